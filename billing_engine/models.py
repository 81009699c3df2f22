"""
Domain Models for the Concession Billing Engine

These dataclasses provide type-safe representations of all billing entities.
All monetary values are Money (integer minor units); quantities are Decimal.

Stored charge rows are loosely typed: every parameter column exists on every
row whatever the charge type. ``ChargeDefinition.from_dict`` re-models such a
row as exactly one terms variant, validated once at load time. Rows that do
not match their declared type become ``MalformedTerms`` instead of raising, so
the engine can report every defective charge of a configuration together.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from .errors import InputError, InvalidPaymentConfiguration, InvalidPeriodInput
from .money import Money, parse_money, to_decimal

# =============================================================================
# ENUMS
# =============================================================================


class ChargeType(str, Enum):
    FIXED = "Fixed"
    PERCENTAGE_OF_SALES = "PercentageOfSales"
    PER_UNIT = "PerUnit"
    PER_AREA = "PerArea"

    @classmethod
    def parse(cls, raw) -> "ChargeType | None":
        """Resolve a canonical or legacy type name; None if unknown."""
        if isinstance(raw, ChargeType):
            return raw
        if raw is None:
            return None
        return _CHARGE_TYPE_ALIASES.get(str(raw).strip().lower())


_CHARGE_TYPE_ALIASES = {
    "fixed": ChargeType.FIXED,
    "percentageofsales": ChargeType.PERCENTAGE_OF_SALES,
    "percentage": ChargeType.PERCENTAGE_OF_SALES,
    "perunit": ChargeType.PER_UNIT,
    "per_unit": ChargeType.PER_UNIT,
    "perarea": ChargeType.PER_AREA,
    "per_area": ChargeType.PER_AREA,
    "per_m2": ChargeType.PER_AREA,
}


# Breakdown type for a charge whose stored type is not recognised
UNKNOWN_TYPE_NAME = "Unknown"


class SkipReason(str, Enum):
    INACTIVE = "Inactive"
    BEFORE_ANNUAL_ANCHOR = "BeforeAnnualAnchor"


class EvaluationStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    INVALID = "invalid"


# =============================================================================
# LOADING HELPERS
# =============================================================================


def _first(data: Mapping, *keys):
    """Return the first populated value among keys; blank strings count as absent."""
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def parse_date(value, field_name: str) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidPeriodInput(field_name, f"must be an ISO date, got {value!r}")
    try:
        # Accept full timestamps ("2025-03-01T00:00:00Z") by their date part
        return date.fromisoformat(value.strip()[:10])
    except ValueError as e:
        raise InvalidPeriodInput(field_name, f"must be an ISO date, got {value!r}") from e


def _optional_date(value, field_name: str) -> date | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_date(value, field_name)


_TRUE_TEXT = {"true", "t", "yes", "y", "1"}
_FALSE_TEXT = {"false", "f", "no", "n", "0"}


def parse_bool(value, field_name: str, default: bool) -> bool:
    """Read a stored flag: a bool, 0/1, or its common text forms. Anything else is rejected."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_TEXT:
            return True
        if text in _FALSE_TEXT:
            return False
    raise ValueError(f"{field_name} must be a boolean, got: {value!r}")


# =============================================================================
# PAYMENT CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class PaymentConfiguration:
    """One contract's billing rule set for a date range."""

    id: Any
    contract_id: Any
    name: str
    effective_from: date
    effective_to: date | None = None  # None = open-ended
    is_active: bool = True
    has_minimum_guarantee: bool = False
    minimum_guarantee_amount: Money | None = None
    description: str | None = None

    def __post_init__(self):
        if self.has_minimum_guarantee:
            if self.minimum_guarantee_amount is None:
                raise InvalidPaymentConfiguration(
                    self.id, "minimumGuaranteeAmount is required when hasMinimumGuarantee=True"
                )
            if self.minimum_guarantee_amount.is_negative:
                raise InvalidPaymentConfiguration(
                    self.id,
                    f"minimumGuaranteeAmount cannot be negative, got: {self.minimum_guarantee_amount}",
                )
        elif self.minimum_guarantee_amount is not None:
            raise InvalidPaymentConfiguration(
                self.id, "minimumGuaranteeAmount must be absent when hasMinimumGuarantee=False"
            )

        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise InvalidPaymentConfiguration(
                self.id,
                f"effectiveTo ({self.effective_to}) is before effectiveFrom ({self.effective_from})",
            )

    def covers(self, as_of: date) -> bool:
        """True if as_of falls inside [effective_from, effective_to]."""
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of <= self.effective_to

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentConfiguration":
        config_id = data.get("id")
        guarantee = _first(data, "minimumGuaranteeAmount", "minimum_guarantee_amount")
        try:
            guarantee_amount = (
                parse_money(guarantee, "minimumGuaranteeAmount") if guarantee is not None else None
            )
            effective_from = parse_date(
                _first(data, "effectiveFrom", "effective_from"), "effectiveFrom"
            )
            effective_to = _optional_date(_first(data, "effectiveTo", "effective_to"), "effectiveTo")
            is_active = parse_bool(_first(data, "isActive", "is_active"), "isActive", default=True)
            has_guarantee = parse_bool(
                _first(data, "hasMinimumGuarantee", "has_minimum_guarantee"), "hasMinimumGuarantee", default=False
            )
        except (ValueError, TypeError) as e:
            raise InvalidPaymentConfiguration(config_id, str(e)) from e

        return cls(
            id=config_id,
            contract_id=_first(data, "contractId", "contract_id"),
            name=_first(data, "name", "configName", "config_name") or "",
            effective_from=effective_from,
            effective_to=effective_to,
            is_active=is_active,
            has_minimum_guarantee=has_guarantee,
            minimum_guarantee_amount=guarantee_amount,
            description=data.get("description"),
        )


def config_row_may_apply(data: Mapping, contract_id, as_of: date) -> bool:
    """
    Pre-filter a raw configuration row without modelling it.

    False only when the row certainly is not in force for contract_id on
    as_of. A row whose flag or dates do not parse is kept, so that
    PaymentConfiguration.from_dict reports it.
    """
    if _first(data, "contractId", "contract_id") != contract_id:
        return False
    try:
        if not parse_bool(_first(data, "isActive", "is_active"), "isActive", default=True):
            return False
        effective_from = parse_date(_first(data, "effectiveFrom", "effective_from"), "effectiveFrom")
        effective_to = _optional_date(_first(data, "effectiveTo", "effective_to"), "effectiveTo")
    except (ValueError, TypeError):
        return True
    return effective_from <= as_of and (effective_to is None or as_of <= effective_to)


# =============================================================================
# CHARGE TERMS (one variant per charge type)
# =============================================================================


@dataclass(frozen=True)
class FixedTerms:
    amount: Money

    charge_type = ChargeType.FIXED

    def __post_init__(self):
        if self.amount.is_negative:
            raise ValueError(f"amount cannot be negative, got: {self.amount}")


@dataclass(frozen=True)
class PercentageOfSalesTerms:
    percentage: Decimal  # 0-100

    charge_type = ChargeType.PERCENTAGE_OF_SALES

    def __post_init__(self):
        if not (Decimal("0") <= self.percentage <= Decimal("100")):
            raise ValueError(f"percentage must be between 0 and 100, got: {self.percentage}")


@dataclass(frozen=True)
class PerUnitTerms:
    unit_rate: Money
    unit_label: str

    charge_type = ChargeType.PER_UNIT

    def __post_init__(self):
        if self.unit_rate.is_negative:
            raise ValueError(f"unitRate cannot be negative, got: {self.unit_rate}")
        if not self.unit_label or not self.unit_label.strip():
            raise ValueError("unitLabel cannot be blank")


@dataclass(frozen=True)
class PerAreaTerms:
    area_rate: Money
    area_m2: Decimal | None = None  # None = use the leased area of the period

    charge_type = ChargeType.PER_AREA

    def __post_init__(self):
        if self.area_rate.is_negative:
            raise ValueError(f"areaRate cannot be negative, got: {self.area_rate}")
        if self.area_m2 is not None and self.area_m2 < 0:
            raise ValueError(f"areaM2 cannot be negative, got: {self.area_m2}")


@dataclass(frozen=True)
class MalformedTerms:
    """A stored charge whose parameters do not match its declared type."""

    declared_type: ChargeType | None  # None = the stored type name is not recognised
    defects: tuple

    @property
    def charge_type(self):
        return self.declared_type


ChargeTerms = FixedTerms | PercentageOfSalesTerms | PerUnitTerms | PerAreaTerms | MalformedTerms

# Parameter columns per type: canonical wire name -> accepted keys
_PARAMETER_KEYS = {
    "amount": ("amount", "fixedAmount", "fixed_amount"),
    "percentage": ("percentage",),
    "unitRate": ("unitRate", "unit_rate", "perUnitAmount", "per_unit_amount"),
    "unitLabel": ("unitLabel", "unit_label", "unitType", "unit_type"),
    "areaRate": ("areaRate", "area_rate", "perM2Amount", "per_m2_amount"),
    "areaM2": ("areaM2", "area_m2", "spaceM2", "space_m2"),
}

_REQUIRED_PARAMETERS = {
    ChargeType.FIXED: ("amount",),
    ChargeType.PERCENTAGE_OF_SALES: ("percentage",),
    ChargeType.PER_UNIT: ("unitRate", "unitLabel"),
    ChargeType.PER_AREA: ("areaRate",),
}

_OPTIONAL_PARAMETERS = {
    ChargeType.PER_AREA: ("areaM2",),
}


def _build_terms(charge_type: ChargeType, params: dict) -> ChargeTerms:
    if charge_type is ChargeType.FIXED:
        return FixedTerms(amount=parse_money(params["amount"], "amount"))
    if charge_type is ChargeType.PERCENTAGE_OF_SALES:
        return PercentageOfSalesTerms(percentage=to_decimal(params["percentage"], "percentage"))
    if charge_type is ChargeType.PER_UNIT:
        return PerUnitTerms(
            unit_rate=parse_money(params["unitRate"], "unitRate"),
            unit_label=str(params["unitLabel"]).strip(),
        )
    area = params.get("areaM2")
    return PerAreaTerms(
        area_rate=parse_money(params["areaRate"], "areaRate"),
        area_m2=to_decimal(area, "areaM2") if area is not None else None,
    )


def load_terms(raw_type, data: Mapping) -> ChargeTerms:
    """
    Re-model a loosely typed charge row as one terms variant.

    Collects every defect of the row instead of stopping at the first:
    unknown type, missing required parameter, parameter belonging to another
    type, or a value that does not parse or is out of range.
    """
    charge_type = ChargeType.parse(raw_type)
    if charge_type is None:
        return MalformedTerms(
            declared_type=None,
            defects=(f"unknown charge type {raw_type!r}",),
        )

    populated = {}
    for name, keys in _PARAMETER_KEYS.items():
        value = _first(data, *keys)
        if value is not None:
            populated[name] = value
    required = _REQUIRED_PARAMETERS[charge_type]
    allowed = required + _OPTIONAL_PARAMETERS.get(charge_type, ())

    defects = [f"missing required parameter '{name}'" for name in required if name not in populated]
    defects += [
        f"parameter '{name}' does not belong to type {charge_type.value}"
        for name in populated
        if name not in allowed
    ]
    if defects:
        return MalformedTerms(declared_type=charge_type, defects=tuple(defects))

    try:
        return _build_terms(charge_type, populated)
    except (InputError, TypeError, ValueError) as e:
        return MalformedTerms(declared_type=charge_type, defects=(str(e),))


def anchor_defects(month, day) -> list:
    """Problems with an annual anchor; empty when the anchor is usable."""
    defects = []
    if month is not None and not (_is_int(month) and 1 <= month <= 12):
        defects.append(f"appliesFromMonth must be 1-12, got: {month!r}")
    if day is not None and not (_is_int(day) and 1 <= day <= 31):
        defects.append(f"appliesFromDay must be 1-31, got: {day!r}")
    if not defects and month is not None and day is not None:
        # Leap year: Feb 29 is a legitimate anchor
        if day > calendar.monthrange(2000, month)[1]:
            defects.append(f"appliesFromDay {day} does not exist in month {month}")
    return defects


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_int(value):
    """Coerce stored anchor values ("3", 3) to int; leave unusable values for anchor_defects."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, (int, str)) or isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return value


# =============================================================================
# CHARGE DEFINITION
# =============================================================================


@dataclass(frozen=True)
class ChargeDefinition:
    """One billable rule owned by exactly one configuration."""

    id: Any
    configuration_id: Any
    name: str
    terms: ChargeTerms
    is_active: bool = True
    applies_from_month: int | None = None
    applies_from_day: int | None = None
    description: str | None = None

    def __post_init__(self):
        problems = anchor_defects(self.applies_from_month, self.applies_from_day)
        if problems:
            raise ValueError(f"Charge {self.id}: {'; '.join(problems)}")

    @property
    def type(self):
        return self.terms.charge_type

    @property
    def type_name(self) -> str:
        charge_type = self.type
        return charge_type.value if isinstance(charge_type, ChargeType) else UNKNOWN_TYPE_NAME

    @property
    def annual_anchor(self) -> tuple | None:
        """(month, day) threshold, or None if the charge applies to every period.

        A lone month means the first of that month; a lone day means that day
        of January.
        """
        if self.applies_from_month is None and self.applies_from_day is None:
            return None
        return (self.applies_from_month or 1, self.applies_from_day or 1)

    @property
    def is_malformed(self) -> bool:
        return isinstance(self.terms, MalformedTerms)

    @classmethod
    def from_dict(cls, data: dict) -> "ChargeDefinition":
        raw_type = _first(data, "type", "chargeType", "charge_type")
        terms = load_terms(raw_type, data)

        month = _optional_int(_first(data, "appliesFromMonth", "applies_from_month"))
        day = _optional_int(_first(data, "appliesFromDay", "applies_from_day"))
        problems = anchor_defects(month, day)
        if problems:
            month = day = None
        try:
            is_active = parse_bool(_first(data, "isActive", "is_active"), "isActive", default=True)
        except ValueError as e:
            # An unreadable flag must not skip the charge: treat it as active and invalid
            is_active = True
            problems.append(str(e))
        if problems:
            existing = terms.defects if isinstance(terms, MalformedTerms) else ()
            terms = MalformedTerms(declared_type=terms.charge_type, defects=existing + tuple(problems))

        return cls(
            id=data.get("id"),
            configuration_id=_first(data, "configurationId", "configuration_id", "paymentConfigId"),
            name=data.get("name") or "",
            terms=terms,
            is_active=is_active,
            applies_from_month=month,
            applies_from_day=day,
            description=data.get("description"),
        )


# =============================================================================
# PERIOD INPUT
# =============================================================================


@dataclass(frozen=True)
class PeriodInput:
    """Measurements for one reporting period, supplied per calculation."""

    period_start: date
    period_end: date
    reported_sales: Money = field(default_factory=Money.zero)
    units_sold: Decimal = Decimal("0")
    leased_area_m2: Decimal | None = None
    units_by_label: Mapping = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "units_by_label", MappingProxyType(dict(self.units_by_label)))

    def units_for(self, label: str) -> Decimal:
        """Units sold for a unit label, falling back to the period total."""
        return self.units_by_label.get(label, self.units_sold)

    @classmethod
    def from_dict(cls, data: dict) -> "PeriodInput":
        area = _first(data, "leasedAreaM2", "leased_area_m2")
        by_label = _first(data, "unitsByLabel", "units_by_label") or {}
        return cls(
            period_start=parse_date(_first(data, "periodStart", "period_start"), "periodStart"),
            period_end=parse_date(_first(data, "periodEnd", "period_end"), "periodEnd"),
            reported_sales=parse_money(
                _first(data, "reportedSales", "reported_sales") or "0", "reportedSales"
            ),
            units_sold=to_decimal(_first(data, "unitsSold", "units_sold") or "0", "unitsSold"),
            leased_area_m2=to_decimal(area, "leasedAreaM2") if area is not None else None,
            units_by_label={
                str(label): to_decimal(count, f"unitsByLabel.{label}")
                for label, count in by_label.items()
            },
        )


# =============================================================================
# EVALUATION / RESULT MODELS
# =============================================================================


@dataclass(frozen=True)
class ChargeEvaluation:
    """Outcome of evaluating one charge for one period."""

    charge: ChargeDefinition
    status: EvaluationStatus
    amount: Money = field(default_factory=Money.zero)  # this line rounded on its own
    skip_reason: SkipReason | None = None
    defects: tuple = ()
    exact: Decimal | None = None  # unrounded minor units; None = amount is exact

    @property
    def exact_minor(self) -> Decimal:
        return self.exact if self.exact is not None else Decimal(self.amount.minor)

    @property
    def applied(self) -> bool:
        return self.status is EvaluationStatus.APPLIED

    @property
    def is_invalid(self) -> bool:
        return self.status is EvaluationStatus.INVALID


@dataclass(frozen=True)
class GuaranteeOutcome:
    """Result of comparing the subtotal against the minimum guarantee."""

    final_amount: Money
    adjustment: Money
    applied: bool


@dataclass(frozen=True)
class BreakdownLine:
    """One itemized row of the breakdown."""

    charge_id: Any
    name: str
    type: str
    amount: Money
    applied: bool
    skip_reason: SkipReason | None = None


@dataclass(frozen=True)
class CalculationResult:
    """Final, caller-owned output of one calculation."""

    subtotal: Money
    charge_breakdown: tuple
    minimum_guarantee_applied: bool
    guarantee_adjustment: Money
    final_amount: Money
    contract_id: Any = None
    configuration_id: Any = None
    period_start: date | None = None
    period_end: date | None = None

    def totals_by_type(self) -> dict:
        """Applied amounts summed per charge type, every type present."""
        totals = {charge_type.value: Money.zero() for charge_type in ChargeType}
        for line in self.charge_breakdown:
            if line.applied:
                totals[line.type] = totals[line.type] + line.amount
        return totals
