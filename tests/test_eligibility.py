"""Property-side guards applied before a submission is priced."""
import unittest
from decimal import Decimal

from models.enums import PropertyStatus
from services.eligibility import validate_submission
from services.errors import DownPaymentTooLow, NotKprEligible, PropertyUnavailable, TermTooLong
from tests.support import make_property


class TestValidateSubmission(unittest.TestCase):
    def test_valid_submission_passes(self):
        prop = make_property()
        self.assertIs(validate_submission(prop, Decimal("150000000"), 15), prop)

    def test_minimum_down_payment_is_inclusive(self):
        validate_submission(make_property(), Decimal("120000000"), 20)

    def test_down_payment_too_low(self):
        with self.assertRaises(DownPaymentTooLow) as ctx:
            validate_submission(make_property(), Decimal("100000000"), 15)
        self.assertIn("120,000,000.00", ctx.exception.message)

    def test_term_too_long(self):
        with self.assertRaises(TermTooLong):
            validate_submission(make_property(), Decimal("150000000"), 21)

    def test_unavailable_property(self):
        for status in (PropertyStatus.SOLD, PropertyStatus.RESERVED, PropertyStatus.OFF_MARKET):
            with self.subTest(status=status):
                with self.assertRaises(PropertyUnavailable):
                    validate_submission(make_property(status=status), Decimal("150000000"), 15)

    def test_not_kpr_eligible(self):
        with self.assertRaises(NotKprEligible):
            validate_submission(make_property(is_kpr_eligible=False), Decimal("150000000"), 15)

    def test_availability_checked_before_down_payment(self):
        with self.assertRaises(PropertyUnavailable):
            validate_submission(make_property(status=PropertyStatus.SOLD), Decimal("1"), 99)


if __name__ == "__main__":
    unittest.main()
