"""WINQER — Dashboard KPI Registry.

Defines the KPIs shown on the month-over-month cards and how they are
labelled. `inverse` marks KPIs where a decrease is an improvement.
"""

from enum import Enum
from typing import Dict


class KPIUnit(str, Enum):
    """Display unit for a KPI."""

    YEN = "円"
    COUNT = "件"
    RATIO = ""


class KPIDefinition:
    """Describes a single dashboard KPI."""

    def __init__(self, name: str, label: str, unit: KPIUnit, inverse: bool = False):
        self.name = name
        self.label = label
        self.unit = unit
        self.inverse = inverse

    def __repr__(self) -> str:
        return f"<KPI {self.name} ({self.unit.value or 'ratio'})>"


# Order matters: cards render in registry order.
MOM_KPIS: Dict[str, KPIDefinition] = {
    "spend": KPIDefinition("spend", "消化金額", KPIUnit.YEN, inverse=True),
    "cv": KPIDefinition("cv", "CV数", KPIUnit.COUNT),
    "cpa": KPIDefinition("cpa", "CPA", KPIUnit.YEN, inverse=True),
    "roas": KPIDefinition("roas", "ROAS", KPIUnit.RATIO),
}


def get_kpi(name: str) -> KPIDefinition | None:
    """Look up a KPI by name."""
    return MOM_KPIS.get(name)
