"""
Drug Interaction Engine

Matches the medications of one prescription against a static table of known
interacting drug pairs. The table is illustrative and not clinically
authoritative.
"""

from typing import List, NamedTuple, Optional, Sequence

from rxcore.domain.prescriptions.models import (
    InteractionSeverity, InteractionWarning, Medication
)


class InteractionPattern(NamedTuple):
    drug1: str
    drug2: str
    severity: InteractionSeverity
    description: str
    recommendation: str


INTERACTION_PATTERNS: List[InteractionPattern] = [
    InteractionPattern(
        "warfarin", "aspirin", InteractionSeverity.MAJOR,
        "Increased risk of bleeding",
        "Monitor INR closely and watch for signs of bleeding, consider alternative therapy"
    ),
    InteractionPattern(
        "metformin", "alcohol", InteractionSeverity.MODERATE,
        "Increased risk of lactic acidosis",
        "Advise patient to limit alcohol consumption"
    ),
    InteractionPattern(
        "simvastatin", "grapefruit", InteractionSeverity.MAJOR,
        "Increased statin levels and toxicity risk",
        "Avoid grapefruit products or consider an alternative statin"
    ),
    InteractionPattern(
        "metformin", "insulin", InteractionSeverity.MODERATE,
        "Risk of hypoglycemia",
        "Monitor blood glucose levels regularly"
    ),
    InteractionPattern(
        "paracetamol", "acetaminophen", InteractionSeverity.MODERATE,
        "Same active ingredient, risk of overdose",
        "Do not prescribe together"
    ),
    InteractionPattern(
        "sildenafil", "nitroglycerin", InteractionSeverity.CRITICAL,
        "Severe hypotension",
        "Contraindicated, do not dispense together"
    ),
]


def _find(names: Sequence[str], token: str, skip: Optional[int] = None) -> Optional[int]:
    for index, name in enumerate(names):
        if index != skip and token in name:
            return index
    return None


def check_interactions(
    medications: Sequence[Medication],
    patterns: Sequence[InteractionPattern] = INTERACTION_PATTERNS
) -> List[InteractionWarning]:
    """Return one warning per pattern matched by two distinct medications."""
    names = [m.name.lower() for m in medications]
    warnings: List[InteractionWarning] = []

    for pattern in patterns:
        token1, token2 = pattern.drug1.lower(), pattern.drug2.lower()
        # try every medication carrying token1, a single combo product matching
        # both tokens must not pair with itself
        for first in (i for i, name in enumerate(names) if token1 in name):
            second = _find(names, token2, skip=first)
            if second is None:
                continue
            drug1 = medications[first].name
            drug2 = medications[second].name
            warnings.append(InteractionWarning(
                drug1=drug1,
                drug2=drug2,
                medications=[drug1, drug2],
                severity=pattern.severity,
                description=pattern.description,
                recommendation=pattern.recommendation
            ))
            break

    return warnings
