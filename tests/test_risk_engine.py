"""
Tests for the pure risk evaluator. Every call passes a fixed clock so the
results are fully deterministic.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.services.risk_config import RiskRuleConfig
from app.services.risk_engine import RiskSignal, decide, evaluate
from app.services.risk_sources import BlocklistMatch, CustomerProfile
from app.utils.enums import BlocklistKind, BlocklistSeverity, RiskDecision

NOW = datetime(2026, 3, 10, 12, 0, 0)
PHONE = "01712345678"
ADDRESS = {"address": "House 12, Road 5", "area": "Dhanmondi", "city": "Dhaka", "district": "Dhaka"}
CONFIG = RiskRuleConfig()


def _customer(age=timedelta(days=90), **stats) -> CustomerProfile:
    return CustomerProfile(id="user-1", created_at=NOW - age, **stats)


def _entry(kind=BlocklistKind.PHONE, value=PHONE, severity=BlocklistSeverity.HARD_BLOCK,
           reason="Repeated refusals", expires_at=None) -> BlocklistMatch:
    return BlocklistMatch(kind=kind, value=value, severity=severity, reason=reason, expires_at=expires_at)


def _evaluate(customer=None, amount=100, blocklist=(), recent=0, config=CONFIG, **kwargs):
    return evaluate(
        customer,
        kwargs.pop("phone", PHONE),
        amount,
        kwargs.pop("address", ADDRESS),
        config=config,
        blocklist=list(blocklist),
        recent_order_count=recent,
        now=NOW,
        **kwargs,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Checkout scenarios
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestScenarios:
    def test_new_account_small_order_is_approved(self):
        result = _evaluate(_customer(age=timedelta(hours=1)), amount=1000)
        assert result.score == 10
        assert result.decision == RiskDecision.APPROVE
        assert [s.name for s in result.signals] == ["New Account (<24h)"]

    def test_established_account_high_value_is_approved(self):
        result = _evaluate(_customer(), amount=6000)
        assert result.score == 20
        assert result.decision == RiskDecision.APPROVE
        assert result.signals == (RiskSignal("High Value Order", 20),)

    def test_three_live_orders_is_flagged(self):
        result = _evaluate(_customer(), amount=1000, recent=3)
        assert result.score == 40
        assert result.decision == RiskDecision.FLAG
        assert result.signals == (RiskSignal("High Order Velocity (3 active)", 40),)

    def test_new_account_high_value_two_live_orders_is_flagged(self):
        result = _evaluate(_customer(age=timedelta(hours=1)), amount=6000, recent=2)
        assert result.score == 40
        assert result.decision == RiskDecision.FLAG
        assert [s.name for s in result.signals] == [
            "New Account (<24h)",
            "High Value Order",
            "High Order Velocity (2 active)",
        ]

    @pytest.mark.parametrize("amount,recent", [(0, 0), (100, 0), (9000, 5)])
    def test_hard_blocked_phone_is_always_blocked(self, amount, recent):
        result = _evaluate(_customer(), amount=amount, recent=recent, blocklist=[_entry()])
        assert result.score >= 100
        assert result.decision == RiskDecision.BLOCK
        assert RiskSignal("Phone Number Blocked: Repeated refusals", 100) in result.signals

    def test_clean_order_has_no_signals(self):
        result = _evaluate(_customer(), amount=100)
        assert result.score == 0
        assert result.decision == RiskDecision.APPROVE
        assert result.signals == ()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Properties
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestProperties:
    @pytest.mark.parametrize("age_hours,amount,recent,blocked", [
        (1, 100, 0, False),
        (1, 7000, 4, False),
        (500, 5001, 2, False),
        (2, 6000, 3, True),
        (500, 0, 1, True),
    ])
    def test_score_is_sum_of_signal_points(self, age_hours, amount, recent, blocked):
        result = _evaluate(
            _customer(age=timedelta(hours=age_hours)),
            amount=amount,
            recent=recent,
            blocklist=[_entry()] if blocked else [],
        )
        assert result.score == sum(s.points for s in result.signals)

    @pytest.mark.parametrize("score,expected", [
        (0, RiskDecision.APPROVE),
        (29, RiskDecision.APPROVE),
        (30, RiskDecision.FLAG),
        (69, RiskDecision.FLAG),
        (70, RiskDecision.BLOCK),
        (250, RiskDecision.BLOCK),
    ])
    def test_threshold_partition(self, score, expected):
        assert decide(score, CONFIG) == expected

    def test_thresholds_follow_config(self):
        config = RiskRuleConfig(risk_threshold_flag=10, risk_threshold_block=20)
        assert decide(9, config) == RiskDecision.APPROVE
        assert decide(10, config) == RiskDecision.FLAG
        assert decide(20, config) == RiskDecision.BLOCK

    def test_hard_block_dominates_even_with_raised_block_threshold(self):
        config = RiskRuleConfig(risk_threshold_block=100)
        result = _evaluate(None, amount=0, blocklist=[_entry()], config=config)
        assert result.decision == RiskDecision.BLOCK

    def test_identical_inputs_give_identical_results(self):
        kwargs = dict(customer=_customer(age=timedelta(hours=3)), amount=6000, recent=2,
                      blocklist=[_entry(severity=BlocklistSeverity.FLAG_ONLY)])
        assert _evaluate(**kwargs) == _evaluate(**kwargs)

    def test_signal_order_is_evaluation_order(self):
        result = _evaluate(
            _customer(age=timedelta(hours=1)),
            amount=6000,
            recent=3,
            blocklist=[_entry()],
        )
        assert [s.points for s in result.signals] == [10, 20, 40, 100]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Individual signals
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestNewAccount:
    def test_just_under_a_day_counts(self):
        result = _evaluate(_customer(age=timedelta(hours=23, minutes=59)))
        assert result.score == 10

    def test_exactly_a_day_does_not_count(self):
        assert _evaluate(_customer(age=timedelta(hours=24))).score == 0

    def test_penalty_is_configurable(self):
        config = RiskRuleConfig(new_user_penalty=25)
        result = _evaluate(_customer(age=timedelta(minutes=5)), config=config)
        assert result.score == 25

    def test_guest_has_no_account_signal(self):
        assert _evaluate(None).score == 0


class TestHighValue:
    def test_threshold_itself_is_not_high_value(self):
        assert _evaluate(_customer(), amount=5000).score == 0

    def test_decimal_amount_above_threshold(self):
        assert _evaluate(_customer(), amount=Decimal("5000.01")).score == 20

    def test_threshold_is_configurable(self):
        config = RiskRuleConfig(high_value_threshold=Decimal("1000"))
        assert _evaluate(_customer(), amount=1500, config=config).score == 20

    def test_negative_amount_is_treated_as_zero(self):
        config = RiskRuleConfig(high_value_threshold=Decimal("0"))
        result = _evaluate(_customer(), amount=-50, config=config)
        assert result.score == 0
        assert result.decision == RiskDecision.APPROVE


class TestVelocity:
    @pytest.mark.parametrize("recent,points", [(0, 0), (1, 0), (2, 10), (3, 40), (7, 40)])
    def test_tiers(self, recent, points):
        assert _evaluate(_customer(), recent=recent).score == points

    def test_factor_carries_count(self):
        result = _evaluate(_customer(), recent=5)
        assert result.signals[0].name == "High Order Velocity (5 active)"

    def test_unavailable_count_scores_zero(self):
        assert _evaluate(_customer(), recent=None).score == 0

    def test_negative_count_scores_zero(self):
        assert _evaluate(_customer(), recent=-3).score == 0


class TestBlocklist:
    def test_flag_only_phone_flags(self):
        result = _evaluate(_customer(), blocklist=[_entry(severity=BlocklistSeverity.FLAG_ONLY)])
        assert result.score == 30
        assert result.decision == RiskDecision.FLAG
        assert result.signals[0].name == "Phone Number Flagged: Repeated refusals"

    def test_flag_only_points_are_configurable(self):
        config = RiskRuleConfig(blocklist_flag_points=15)
        result = _evaluate(
            _customer(),
            blocklist=[_entry(severity=BlocklistSeverity.FLAG_ONLY)],
            config=config,
        )
        assert result.score == 15

    def test_hard_block_wins_over_flag_only(self):
        entries = [
            _entry(severity=BlocklistSeverity.FLAG_ONLY, reason="watch"),
            _entry(kind=BlocklistKind.USER_ID, value="user-1", reason="fraud ring"),
        ]
        result = _evaluate(_customer(), blocklist=entries)
        assert result.signals == (RiskSignal("Account Blocked: fraud ring", 100),)

    def test_only_one_blocklist_signal(self):
        entries = [_entry(reason="first"), _entry(reason="second")]
        result = _evaluate(_customer(), blocklist=entries)
        assert result.score == 100
        assert len(result.signals) == 1
        assert result.signals[0].name.endswith("first")

    def test_expired_entry_is_ignored(self):
        entry = _entry(expires_at=NOW - timedelta(minutes=1))
        assert _evaluate(_customer(), blocklist=[entry]).score == 0

    def test_future_expiry_is_active(self):
        entry = _entry(expires_at=NOW + timedelta(days=1))
        assert _evaluate(_customer(), blocklist=[entry]).score == 100

    def test_other_phone_does_not_match(self):
        entry = _entry(value="01812345678")
        assert _evaluate(_customer(), blocklist=[entry]).score == 0

    def test_user_id_needs_a_customer(self):
        entry = _entry(kind=BlocklistKind.USER_ID, value="user-1")
        assert _evaluate(None, blocklist=[entry]).score == 0

    def test_address_keyword_is_case_insensitive(self):
        entry = _entry(kind=BlocklistKind.ADDRESS_KEYWORD, value="DHANMONDI", reason="")
        result = _evaluate(_customer(), blocklist=[entry])
        assert result.signals == (RiskSignal("Address Blocked", 100),)

    def test_address_keyword_ignores_unlisted_fields(self):
        entry = _entry(kind=BlocklistKind.ADDRESS_KEYWORD, value="leave at gate")
        address = {**ADDRESS, "note": "Leave at gate"}
        assert _evaluate(_customer(), blocklist=[entry], address=address).score == 0

    def test_address_keyword_without_address(self):
        entry = _entry(kind=BlocklistKind.ADDRESS_KEYWORD, value="dhanmondi")
        assert _evaluate(_customer(), blocklist=[entry], address=None).score == 0

    def test_ip_entry_matches_request_ip(self):
        entry = _entry(kind=BlocklistKind.IP, value="203.0.113.9", severity=BlocklistSeverity.FLAG_ONLY)
        assert _evaluate(_customer(), blocklist=[entry], ip_address="203.0.113.9").score == 30
        assert _evaluate(_customer(), blocklist=[entry], ip_address="203.0.113.10").score == 0
        assert _evaluate(_customer(), blocklist=[entry]).score == 0


class TestRefusalRate:
    def test_high_refusal_rate_adds_penalty(self):
        customer = _customer(total_orders=10, delivered_orders=7, refused_orders=2, returned_orders=1)
        result = _evaluate(customer)
        assert result.signals == (RiskSignal("High Refusal Rate (30%)", 20),)

    def test_below_threshold(self):
        customer = _customer(total_orders=10, delivered_orders=9, refused_orders=1)
        assert _evaluate(customer).score == 0

    def test_needs_enough_history(self):
        customer = _customer(total_orders=2, refused_orders=2)
        assert _evaluate(customer).score == 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Reporting
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestReporting:
    def test_admin_note_lists_factors(self):
        result = _evaluate(_customer(age=timedelta(hours=1)), amount=6000, recent=0,
                           blocklist=[_entry(severity=BlocklistSeverity.FLAG_ONLY, reason="")])
        assert result.admin_note() == (
            "Flagged (score: 60): New Account (<24h), High Value Order, Phone Number Flagged"
        )

    def test_factors_are_serializable(self):
        result = _evaluate(_customer(), amount=6000, recent=2)
        assert result.factors() == [
            {"factor": "High Value Order", "points": 20},
            {"factor": "High Order Velocity (2 active)", "points": 10},
        ]

    def test_flagged_and_blocked_properties(self):
        approve = _evaluate(_customer())
        flag = _evaluate(_customer(), recent=3)
        block = _evaluate(_customer(), blocklist=[_entry()])
        assert (approve.flagged, approve.blocked) == (False, False)
        assert (flag.flagged, flag.blocked) == (True, False)
        assert (block.flagged, block.blocked) == (True, True)

    def test_evaluated_at_uses_given_clock(self):
        assert _evaluate(_customer()).evaluated_at == NOW
