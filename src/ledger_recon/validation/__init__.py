"""Account-code validation and the stores it reads from."""

from .account_validator import AccountValidator, check_rule
from .stores import (
    ChartOfAccounts,
    InMemoryChartOfAccounts,
    InMemoryRuleStore,
    OutputSink,
    RuleStore,
    rule_from_dict,
)

__all__ = [
    "AccountValidator",
    "check_rule",
    "ChartOfAccounts",
    "InMemoryChartOfAccounts",
    "InMemoryRuleStore",
    "OutputSink",
    "RuleStore",
    "rule_from_dict",
]
