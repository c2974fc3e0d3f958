import unittest
from datetime import date
from decimal import Decimal

from apps.edusave.services.models import AccountHolder, TopUpRule
from apps.edusave.services.topups.eligibility import (
    EligibilityCriteria,
    calculate_age,
    eligible_accounts,
    is_eligible,
)

TODAY = date(2026, 10, 18)


def make_account(**kw) -> AccountHolder:
    values = dict(
        id="acc-1",
        nric="S1234567A",
        name="Tan Wei Ming",
        date_of_birth=date(2009, 3, 1),
        email="weiming@example.com",
        balance=Decimal("100.00"),
        status="active",
        in_school="in_school",
        education_level="secondary",
    )
    values.update(kw)
    return AccountHolder(**values)


class CalculateAgeTests(unittest.TestCase):
    def test_birthday_already_passed_this_year(self) -> None:
        self.assertEqual(calculate_age(date(2009, 3, 1), TODAY), 17)

    def test_birthday_not_yet_reached_rounds_down(self) -> None:
        self.assertEqual(calculate_age(date(2009, 10, 19), TODAY), 16)

    def test_birthday_today_counts(self) -> None:
        self.assertEqual(calculate_age(date(2010, 10, 18), TODAY), 16)

    def test_leap_day_birthday(self) -> None:
        dob = date(2008, 2, 29)
        self.assertEqual(calculate_age(dob, date(2026, 2, 28)), 17)
        self.assertEqual(calculate_age(dob, date(2026, 3, 1)), 18)


class IsEligibleTests(unittest.TestCase):
    def test_inactive_account_is_never_eligible(self) -> None:
        account = make_account(status="inactive")
        self.assertFalse(is_eligible(account, EligibilityCriteria(), TODAY))
        matching = EligibilityCriteria(min_age=10, max_age=30, education_level="secondary")
        self.assertFalse(is_eligible(account, matching, TODAY))

    def test_no_constraints_admits_every_active_account(self) -> None:
        accounts = [
            make_account(id="a", balance=Decimal("0"), education_level=None),
            make_account(id="b", date_of_birth=date(1960, 1, 1), in_school="not_in_school"),
            make_account(id="c", balance=Decimal("99999.99"), education_level="postgraduate"),
        ]
        result = eligible_accounts(accounts, EligibilityCriteria(), TODAY)
        self.assertEqual([a.id for a in result], ["a", "b", "c"])

    def test_turning_min_age_today_is_eligible(self) -> None:
        account = make_account(date_of_birth=date(2010, 10, 18))
        self.assertTrue(is_eligible(account, EligibilityCriteria(min_age=16), TODAY))

    def test_day_before_min_age_birthday_is_not_eligible(self) -> None:
        account = make_account(date_of_birth=date(2010, 10, 19))
        self.assertFalse(is_eligible(account, EligibilityCriteria(min_age=16), TODAY))

    def test_max_age_is_inclusive(self) -> None:
        account = make_account(date_of_birth=date(2005, 1, 1))  # 21
        self.assertTrue(is_eligible(account, EligibilityCriteria(max_age=21), TODAY))
        self.assertFalse(is_eligible(account, EligibilityCriteria(max_age=20), TODAY))

    def test_balance_bounds_are_inclusive(self) -> None:
        account = make_account(balance=Decimal("500.00"))
        self.assertTrue(
            is_eligible(
                account,
                EligibilityCriteria(min_balance=Decimal("500"), max_balance=Decimal("500")),
                TODAY,
            )
        )
        self.assertFalse(is_eligible(account, EligibilityCriteria(max_balance=Decimal("499.99")), TODAY))
        self.assertFalse(is_eligible(account, EligibilityCriteria(min_balance=Decimal("500.01")), TODAY))

    def test_schooling_and_education_level_are_exact_matches(self) -> None:
        account = make_account(in_school="not_in_school", education_level="tertiary")
        self.assertTrue(is_eligible(account, EligibilityCriteria(in_school="not_in_school"), TODAY))
        self.assertFalse(is_eligible(account, EligibilityCriteria(in_school="in_school"), TODAY))
        self.assertTrue(is_eligible(account, EligibilityCriteria(education_level="tertiary"), TODAY))
        self.assertFalse(is_eligible(account, EligibilityCriteria(education_level="secondary"), TODAY))

    def test_unset_education_level_fails_a_level_filter(self) -> None:
        account = make_account(education_level=None)
        self.assertFalse(is_eligible(account, EligibilityCriteria(education_level="primary"), TODAY))

    def test_age_and_level_rule_picks_one_of_three(self) -> None:
        rule = TopUpRule(
            id="r1",
            name="Secondary 16-21",
            amount=Decimal("100"),
            min_age=16,
            max_age=21,
            education_level="secondary",
        )
        accounts = [
            make_account(id="seventeen", date_of_birth=date(2009, 1, 1), education_level="secondary"),
            make_account(id="twenty-two", date_of_birth=date(2004, 1, 1), education_level="secondary"),
            make_account(id="eighteen", date_of_birth=date(2008, 1, 1), education_level="tertiary"),
        ]
        result = eligible_accounts(accounts, EligibilityCriteria.from_rule(rule), TODAY)
        self.assertEqual([a.id for a in result], ["seventeen"])

    def test_same_today_gives_same_answer(self) -> None:
        account = make_account(date_of_birth=date(2010, 10, 18))
        criteria = EligibilityCriteria(min_age=16, max_age=16)
        self.assertEqual(
            is_eligible(account, criteria, TODAY),
            is_eligible(account, criteria, TODAY),
        )
        self.assertFalse(is_eligible(account, criteria, date(2026, 10, 17)))


class DescribeCriteriaTests(unittest.TestCase):
    def test_describe_lists_only_set_constraints(self) -> None:
        criteria = EligibilityCriteria(
            min_age=16,
            max_balance=Decimal("1000"),
            in_school="in_school",
            education_level="post_secondary",
        )
        self.assertEqual(
            criteria.describe(),
            ["Age 16+", "Balance up to $1000.00", "In School", "Education: Post-Secondary"],
        )

    def test_describe_empty(self) -> None:
        self.assertEqual(EligibilityCriteria().describe(), [])


if __name__ == "__main__":
    unittest.main()
