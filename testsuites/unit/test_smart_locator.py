import pytest

from testsuites.unit.fake_driver import FakeElement
from ui_resilience.framework.exceptions import ElementNotFoundError
from ui_resilience.framework.smart_locator import SelfHealingLocator


def login_button():
    return FakeElement(
        tag="button",
        text="Log In",
        attributes={"id": "login-btn", "class": "btn primary", "name": "login"},
    )


def test_requires_at_least_one_locator(driver):
    with pytest.raises(ValueError):
        SelfHealingLocator(driver, "nothing")


def test_consistently_working_candidate_rises_to_top(driver):
    element = driver.add("#third", login_button())
    locator = SelfHealingLocator(driver, "login", "#first", "#second", "#third")

    for _ in range(3):
        assert locator.find_element() is element

    ranked = locator.ranked_candidates()
    assert ranked[0].selector == "#third"
    assert ranked[0].score > ranked[1].score
    assert locator.get_locator_success_rates() == {"#third": 3, "#first": -1, "#second": -1}
    # Once ranked first, the failing candidates are no longer tried
    assert driver.find_calls == ["#first", "#second", "#third", "#third", "#third"]


def test_ties_keep_registration_order(driver):
    locator = SelfHealingLocator(driver, "menu", "#a", "#b", "#c")
    assert [c.selector for c in locator.ranked_candidates()] == ["#a", "#b", "#c"]


def test_synthesizes_id_locator_after_all_candidates_fail(driver):
    element = driver.add("#old-login", login_button())
    locator = SelfHealingLocator(driver, "login", "#old-login")
    locator.find_element()

    driver.remove("#old-login")
    driver.add("#login-btn", element)
    locator.invalidate()

    assert locator.find_element() is element
    synthesized = [c.selector for c in locator.ranked_candidates() if c.synthesized]
    assert synthesized == ["#login-btn", ".btn.primary", '[name="login"]', 'text="Log In"']
    assert locator.current is element


def test_synthesis_priority_order(driver):
    driver.add("#x", login_button())
    locator = SelfHealingLocator(driver, "login", "#x")
    locator.find_element()

    assert locator.synthesize_locators() == [
        "#login-btn",
        ".btn.primary",
        '[name="login"]',
        'text="Log In"',
    ]


def test_element_not_found_carries_key_and_last_error(driver):
    locator = SelfHealingLocator(driver, "ghost", "#ghost")

    with pytest.raises(ElementNotFoundError) as exc_info:
        locator.find_element()

    assert exc_info.value.key == "ghost"
    assert "#ghost" in str(exc_info.value.last_error)


def test_candidates_are_appended_never_replaced(driver):
    locator = SelfHealingLocator(driver, "btn", "#a")
    locator.add_alternative_locator("#b")
    locator.add_alternative_locator("#a")

    assert [c.selector for c in locator.ranked_candidates()] == ["#a", "#b"]


def test_cannot_remove_last_locator(driver):
    locator = SelfHealingLocator(driver, "btn", "#a", "#b")
    locator.remove_locator("#a")

    with pytest.raises(ValueError):
        locator.remove_locator("#b")
    assert [c.selector for c in locator.ranked_candidates()] == ["#b"]


def test_refresh_replaces_reference_wholesale(driver):
    first = driver.add("#row", FakeElement(text="one"))
    locator = SelfHealingLocator(driver, "row", "#row")
    assert locator.resolve() is first

    second = FakeElement(text="two")
    driver.dom["#row"] = [second]

    assert locator.resolve() is first
    assert locator.refresh() is second
    assert locator.current is second


def test_find_elements_accumulates_across_candidates(driver):
    a, b = FakeElement(text="a"), FakeElement(text="b")
    driver.add(".item", a, b)
    driver.add("li", a)
    locator = SelfHealingLocator(driver, "items", ".item", "li", ".missing")

    assert locator.find_elements() == [a, b, a]
    assert locator.get_locator_success_rates() == {".item": 1, "li": 1, ".missing": -1}


def test_empty_candidate_sinks_below_matching_ones(driver):
    item = driver.add("li.item", FakeElement(text="a"))
    locator = SelfHealingLocator(driver, "items", ".gone", "li.item")

    assert locator.find_elements() == [item]
    assert [c.selector for c in locator.ranked_candidates()] == ["li.item", ".gone"]


def test_health_report_lists_candidates_in_rank_order(driver):
    driver.add("#b", login_button())
    locator = SelfHealingLocator(driver, "login", "#a", "#b")
    locator.find_element()

    report = locator.get_health_report()
    assert report.index("#b") < report.index("#a")
    assert "+1 / -0" in report
