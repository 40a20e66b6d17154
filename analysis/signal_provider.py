"""
Situational signal providers for the heuristic analyzer.

The analyzer never draws randomness itself; everything non-deterministic
comes through a provider so the weighting logic can be exercised with a
fixed double.
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from analysis.models import Token
from utils.constants import SUSPICIOUS_CODE_PATTERNS


@dataclass
class SituationalSignals:
    is_new_token: bool
    has_low_liquidity: bool
    is_verified: bool


@dataclass
class ContractFindings:
    has_known_vulnerabilities: bool
    suspicious_patterns: List[str] = field(default_factory=list)


class SignalProvider(ABC):
    """Interface for the analyzer's stand-in model signals"""

    @abstractmethod
    def situational_signals(self, from_token: Token, to_token: Token) -> SituationalSignals:
        pass

    @abstractmethod
    def contract_findings(self, token: Token) -> ContractFindings:
        pass

    @abstractmethod
    def confidence_jitter(self) -> float:
        """Value in [0, 1) spread over the confidence band"""
        pass


class RandomSignalProvider(SignalProvider):
    """Pseudo-random signals standing in for a trained classifier"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def situational_signals(self, from_token: Token, to_token: Token) -> SituationalSignals:
        return SituationalSignals(
            is_new_token=self.rng.random() > 0.7,
            has_low_liquidity=self.rng.random() > 0.8,
            is_verified=self.rng.random() > 0.3,
        )

    def contract_findings(self, token: Token) -> ContractFindings:
        return ContractFindings(
            has_known_vulnerabilities=self.rng.random() > 0.8,
            suspicious_patterns=[p for p in SUSPICIOUS_CODE_PATTERNS if self.rng.random() > 0.8],
        )

    def confidence_jitter(self) -> float:
        return self.rng.random()


class StaticSignalProvider(SignalProvider):
    """Fixed signals, for tests and dry runs"""

    def __init__(
        self,
        is_new_token: bool = False,
        has_low_liquidity: bool = False,
        is_verified: bool = True,
        has_known_vulnerabilities: bool = False,
        suspicious_patterns: Sequence[str] = (),
        jitter: float = 0.0,
    ):
        self.signals = SituationalSignals(is_new_token, has_low_liquidity, is_verified)
        self.findings = ContractFindings(has_known_vulnerabilities, list(suspicious_patterns))
        self.jitter = jitter

    def situational_signals(self, from_token: Token, to_token: Token) -> SituationalSignals:
        return self.signals

    def contract_findings(self, token: Token) -> ContractFindings:
        return ContractFindings(
            self.findings.has_known_vulnerabilities,
            list(self.findings.suspicious_patterns),
        )

    def confidence_jitter(self) -> float:
        return self.jitter
