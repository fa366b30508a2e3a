from enum import Enum

from tortoise import fields, models


class UnitKind(str, Enum):
    CONSUMER = "Consumer"
    GENERATOR = "Generator"


class TariffType(str, Enum):
    RESIDENTIAL = "Residential"
    COMMERCIAL = "Commercial"
    INDUSTRIAL = "Industrial"


# -------- Networks --------
class Network(models.Model):
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=200, index=True)
    description = fields.TextField(null=True)
    city = fields.CharField(max_length=100, null=True)
    state = fields.CharField(max_length=2, null=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)
    updated_at = fields.DatetimeField(auto_now=True, index=True)

    units: fields.ReverseRelation["Unit"]

    class Meta:
        table = "networks"

    def __str__(self) -> str:
        return self.name or f"Network#{self.id}"


class Concessionaire(models.Model):
    """Distribution company (distribuidora) publishing the tariffs."""
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=200, unique=True, index=True)
    region = fields.CharField(max_length=100, null=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)
    updated_at = fields.DatetimeField(auto_now=True, index=True)

    tariffs: fields.ReverseRelation["Tariff"]

    class Meta:
        table = "concessionaires"

    def __str__(self) -> str:
        return self.name


# -------- Metering --------
class Unit(models.Model):
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=200)
    kind = fields.CharEnumField(UnitKind, max_length=16, index=True)
    network = fields.ForeignKeyField("models.Network", related_name="units", on_delete=fields.CASCADE, index=True)
    concessionaire = fields.ForeignKeyField(
        "models.Concessionaire", null=True, related_name="units", on_delete=fields.SET_NULL, index=True
    )
    tariff_type = fields.CharEnumField(TariffType, max_length=16, default=TariffType.RESIDENTIAL)
    capacity_kw = fields.FloatField(null=True)  # generators only
    created_at = fields.DatetimeField(auto_now_add=True, index=True)
    updated_at = fields.DatetimeField(auto_now=True, index=True)

    readings: fields.ReverseRelation["Reading"]

    class Meta:
        table = "units"

    def __str__(self) -> str:
        return f"{self.name} ({self.kind.value})"


class Reading(models.Model):
    """
    One metered kWh value for a unit. Readings are immutable once recorded;
    consumers and generators share the table, the unit's kind decides the role.
    """
    id = fields.IntField(pk=True)
    unit = fields.ForeignKeyField("models.Unit", related_name="readings", on_delete=fields.CASCADE, index=True)
    value = fields.FloatField()
    reading_at = fields.DatetimeField(index=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "readings"
        unique_together = ("unit", "reading_at")


# -------- Tariffs --------
class Tariff(models.Model):
    """
    Rate per kWh published by a concessionaire for one customer type.
    Validity window is [start_date, end_date); null end_date = still current.
    """
    id = fields.IntField(pk=True)
    concessionaire = fields.ForeignKeyField(
        "models.Concessionaire", related_name="tariffs", on_delete=fields.CASCADE, index=True
    )
    type = fields.CharEnumField(TariffType, max_length=16, default=TariffType.RESIDENTIAL, index=True)
    value = fields.FloatField()
    start_date = fields.DatetimeField(index=True)
    end_date = fields.DatetimeField(null=True, index=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)
    updated_at = fields.DatetimeField(auto_now=True, index=True)

    class Meta:
        table = "tariffs"
        unique_together = ("concessionaire", "type", "start_date")

    def __str__(self) -> str:
        return f"{self.concessionaire_id}/{self.type.value} R$ {self.value} ({self.start_date}..{self.end_date or '∞'})"
