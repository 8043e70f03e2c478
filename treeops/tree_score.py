"""
Tree score pricing.

A tree's base score is its height times canopy diameter times trunk
diameter in feet. Site hazards raise the score by a percentage, the score
is priced per point, and a small set of business rules adjusts the result.
"""

from __future__ import annotations

import math
from typing import Optional

from treeops.schemas import (
    CostParameters,
    HazardFactors,
    QuickEstimateResponse,
    TreeMeasurements,
    TreeScoreBreakdown,
    TreeScoreResponse,
)

HAZARD_WEIGHTS = {
    "pool": 15,
    "fence": 10,
    "structures": 20,
    "utilities": 25,
    "permitting": 30,
    "steep_terrain": 12,
    "soft_soil": 8,
    "limited_access": 18,
    "nearby_vehicles": 14,
    "glass_windows": 9,
    "septic_tank": 7,
    "overhead_lines": 22,
    "underground_utilities": 19,
}

LARGE_TREE_DBH = 24
HIGH_RISK_IMPACT = 50
MINIMUM_JOB_COST = 500
SAFETY_EQUIPMENT_FEE = 150
CRANE_SETUP_FEE = 800
PERMIT_FEE = 150

SIZE_CATEGORIES = (
    (3500, "Extra Large"),
    (2000, "Large"),
    (1000, "Medium"),
)


def _round(value: float) -> int:
    # Half-up, so 2.5 prices as 3 rather than 2.
    return math.floor(value + 0.5)


def base_tree_score(measurements: TreeMeasurements) -> float:
    canopy_diameter = measurements.canopy_radius * 2
    dbh_feet = measurements.dbh / 12
    return measurements.height * canopy_diameter * dbh_feet


def hazard_impact(hazards: HazardFactors) -> int:
    """Percentage increase contributed by the flagged site hazards."""
    flags = hazards.model_dump()
    return sum(weight for name, weight in HAZARD_WEIGHTS.items() if flags.get(name))


def final_tree_score(base_score: float, impact_percent: float) -> float:
    return base_score * (1 + impact_percent / 100)


def base_cost(final_score: float, params: CostParameters) -> float:
    subtotal = params.setup_cost + final_score * params.rate_per_point
    return subtotal * params.profit_multiplier


def _apply_business_rules(
    measurements: TreeMeasurements,
    hazards: HazardFactors,
    impact: float,
    cost: float,
    params: CostParameters,
) -> tuple[float, list[str], list[str], dict[str, float]]:
    rules: list[str] = []
    risk_flags: list[str] = []
    fees: dict[str, float] = {}

    if measurements.dbh >= LARGE_TREE_DBH:
        cost *= 1.15
        rules.append("BR-001: Large Tree Bonus (+15%)")

    if impact >= HIGH_RISK_IMPACT:
        risk_flags.append("HIGH RISK: Supervisor review required")
        risk_flags.append("Site visit required before work begins")
        fees["Safety Equipment"] = SAFETY_EQUIPMENT_FEE
        cost += SAFETY_EQUIPMENT_FEE
        rules.append("BR-002: High-Risk Safety Protocol")

    if cost < MINIMUM_JOB_COST:
        cost = MINIMUM_JOB_COST
        rules.append("BR-003: Minimum Job Size Enforced ($500)")

    needs_crane = measurements.height > 60 or (
        measurements.height > 40 and hazards.limited_access
    )
    if needs_crane:
        fees["Crane Setup"] = CRANE_SETUP_FEE
        crane_rate_increase = params.rate_per_point * 0.25
        cost += CRANE_SETUP_FEE + measurements.height * crane_rate_increase
        risk_flags.append("CRANE REQUIRED: Specialized operator needed")
        rules.append("BR-004: Crane Requirement (+$800 + 25% rate increase)")

    if hazards.permitting:
        fees["Permit Processing"] = PERMIT_FEE
        cost += PERMIT_FEE
        risk_flags.append("PERMITS REQUIRED: 7-14 day timeline extension")
        rules.append("BR-005: Permit Processing Fee (+$150)")

    return cost, rules, risk_flags, fees


def calculate_tree_score(
    measurements: TreeMeasurements,
    hazards: HazardFactors,
    params: Optional[CostParameters] = None,
) -> TreeScoreResponse:
    params = params or CostParameters()

    base = base_tree_score(measurements)
    impact = hazard_impact(hazards)
    final = final_tree_score(base, impact)
    cost = base_cost(final, params)
    adjusted, rules, risk_flags, fees = _apply_business_rules(
        measurements, hazards, impact, cost, params
    )

    score_cost = final * params.rate_per_point
    subtotal = params.setup_cost + score_cost
    markup = subtotal * (params.profit_multiplier - 1)

    return TreeScoreResponse(
        base_tree_score=_round(base),
        hazard_impact=impact,
        final_tree_score=_round(final),
        total_cost=_round(adjusted),
        business_rules=rules,
        risk_flags=risk_flags,
        breakdown=TreeScoreBreakdown(
            setup_cost=params.setup_cost,
            score_cost=_round(score_cost),
            subtotal=_round(subtotal),
            markup=_round(markup),
            final_cost=_round(adjusted),
            additional_fees=fees,
        ),
    )


def size_category(score: float) -> str:
    for threshold, label in SIZE_CATEGORIES:
        if score > threshold:
            return label
    return "Small"


def quick_estimate(height: float, canopy_radius: float, dbh: float) -> QuickEstimateResponse:
    measurements = TreeMeasurements(height=height, canopy_radius=canopy_radius, dbh=dbh)
    score = base_tree_score(measurements)
    return QuickEstimateResponse(
        base_score=_round(score),
        estimated_cost=_round(base_cost(score, CostParameters())),
        category=size_category(score),
    )
