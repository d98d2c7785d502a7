"""Unit tests for accumulator contract terms."""

from datetime import date

import pytest
from pydantic import ValidationError

from jkoda.core.terms import AccumulatorTerms
from jkoda.core.types import ContractCategory, SubCategory
from jkoda.exceptions import ContractValidationError, UnsupportedSubCategoryError


class TestAccumulatorTermsConstruction:
    """Test construction, defaults and derived constants."""

    def test_derived_constants(self, swap_terms):
        """Constants used by the daily rule are precomputed."""
        assert swap_terms.num_periods == 2
        assert swap_terms.max_gearing_multiplier == 1.0
        assert swap_terms.max_gearing_times_strike == 100.0
        assert swap_terms.shares_per_day_times_strike == 1000.0
        assert swap_terms.final_period_end == date(2024, 1, 19)
        assert swap_terms.category == ContractCategory.ACCUMULATOR

    def test_geared_constants(self, note_terms):
        assert note_terms.has_gearing
        assert note_terms.max_gearing_multiplier == 2.0
        assert note_terms.max_gearing_times_strike == 200.0
        assert note_terms.gearing_strike == 90.0

    def test_gearing_strike_defaults_to_strike(self, swap_terms):
        assert swap_terms.gearing_strike == swap_terms.strike_price
        assert not swap_terms.has_gearing

    def test_optional_dates_defaults(self, swap_terms):
        """Issue date, first KO date and guaranteed date derive from the first accrual day."""
        assert swap_terms.issue_date == date(2024, 1, 8)
        assert swap_terms.first_ko_date == date(2024, 1, 8)
        assert swap_terms.last_guaranteed_accumulation_date == date(2024, 1, 7)

    def test_period_end_dates_sorted_and_deduplicated(self, terms_kwargs):
        terms_kwargs["period_end_dates"] = ["2024-01-19", "2024-01-12", "2024-01-19"]
        terms = AccumulatorTerms(**terms_kwargs)
        assert terms.period_end_dates == (date(2024, 1, 12), date(2024, 1, 19))

    def test_iso_strings_accepted(self, terms_kwargs):
        terms_kwargs["first_accumulation_date"] = "2024-01-08"
        terms = AccumulatorTerms(**terms_kwargs)
        assert terms.first_accumulation_date == date(2024, 1, 8)

    def test_terms_are_frozen(self, swap_terms):
        with pytest.raises(ValidationError):
            swap_terms.strike_price = 90.0


class TestAccumulatorTermsValidation:
    """Test rejected terms."""

    @pytest.mark.parametrize("field", ["strike_price", "ko_price", "shares_per_day"])
    @pytest.mark.parametrize("value", [0.0, -1.0])
    def test_non_positive_values_rejected(self, terms_kwargs, field, value):
        terms_kwargs[field] = value
        with pytest.raises(ValidationError, match="must be positive"):
            AccumulatorTerms(**terms_kwargs)

    def test_gearing_multiplier_below_one_rejected(self, terms_kwargs):
        terms_kwargs["gearing_multiplier"] = 0.5
        with pytest.raises(ValidationError, match="Gearing multiplier"):
            AccumulatorTerms(**terms_kwargs)

    def test_negative_settlement_lag_rejected(self, terms_kwargs):
        terms_kwargs["settlement_lag"] = -1
        with pytest.raises(ValidationError, match="Settlement lag"):
            AccumulatorTerms(**terms_kwargs)

    def test_empty_period_list_rejected(self, terms_kwargs):
        terms_kwargs["period_end_dates"] = ()
        with pytest.raises(ValidationError, match="At least one period"):
            AccumulatorTerms(**terms_kwargs)

    def test_decumulator_rejected(self, terms_kwargs):
        terms_kwargs["sub_category"] = SubCategory.DECUMULATOR_SWAP
        with pytest.raises(UnsupportedSubCategoryError) as exc_info:
            AccumulatorTerms(**terms_kwargs)
        assert isinstance(exc_info.value, ContractValidationError)
        assert exc_info.value.context["contract_id"] == "KODA-001"


class TestAccumulatorTermsHelpers:
    """Test the finalized view and term-sheet construction."""

    def test_with_period_end_dates_leaves_original(self, swap_terms):
        moved = swap_terms.with_period_end_dates([date(2024, 1, 15), date(2024, 1, 19)])
        assert moved.period_end_dates == (date(2024, 1, 15), date(2024, 1, 19))
        assert swap_terms.period_end_dates == (date(2024, 1, 12), date(2024, 1, 19))
        assert moved.shares_per_day_times_strike == swap_terms.shares_per_day_times_strike

    def test_from_config_note(self):
        terms = AccumulatorTerms.from_config(
            {
                "contract_id": "KODA-003",
                "underlying_id": "0700.HK",
                "first_accumulation_date": "2024-01-02",
                "strike_price": 300.0,
                "ko_price": 360.0,
                "shares_per_day": 100,
                "note_or_swap": "note",
                "accum_or_decum": "accum",
                "gearing_price": 280.0,
                "gearing_multiplier": 2.0,
                "last_guaranteed_accum_date": "2024-01-10",
                "period_end_dates": ["2024-01-31", "2024-02-29"],
            }
        )
        assert terms.sub_category == SubCategory.NOTE
        assert terms.gearing_strike == 280.0
        assert terms.last_guaranteed_accumulation_date == date(2024, 1, 10)
        assert terms.period_end_dates == (date(2024, 1, 31), date(2024, 2, 29))

    def test_from_config_defaults_to_swap(self):
        terms = AccumulatorTerms.from_config(
            {
                "contract_id": "KODA-004",
                "underlying_id": "0700.HK",
                "first_accumulation_date": "2024-01-02",
                "strike_price": 300.0,
                "ko_price": 360.0,
                "shares_per_day": 100,
                "period_end_dates": ["2024-01-31"],
            }
        )
        assert terms.sub_category == SubCategory.SWAP

    def test_from_config_decumulator_rejected(self):
        with pytest.raises(UnsupportedSubCategoryError):
            AccumulatorTerms.from_config(
                {
                    "contract_id": "KODA-005",
                    "underlying_id": "0700.HK",
                    "first_accumulation_date": "2024-01-02",
                    "strike_price": 300.0,
                    "ko_price": 360.0,
                    "shares_per_day": 100,
                    "note_or_swap": "swap",
                    "accum_or_decum": "decum",
                    "period_end_dates": ["2024-01-31"],
                }
            )
