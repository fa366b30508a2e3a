# services/seeder.py
from __future__ import annotations
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from tortoise.transactions import in_transaction

from models import Concessionaire, Network, Reading, Tariff, TariffType, Unit, UnitKind

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
UTC = timezone.utc


def _load_json(filename: str, data_dir: Path):
    p = data_dir / filename
    return json.loads(p.read_text(encoding="utf-8")) if p.exists() else []


def _parse_ts(v: Optional[str]) -> Optional[datetime]:
    if not v:
        return None
    dt = datetime.fromisoformat(str(v).replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


async def seed_if_empty(logger=print, data_dir: Optional[Path] = None) -> Dict[str, int]:
    data_dir = data_dir or DATA_DIR
    networks_count = await Network.all().count()
    units_count = await Unit.all().count()
    tariffs_count = await Tariff.all().count()

    logger(f"[seed] counts => networks={networks_count}, units={units_count}, tariffs={tariffs_count}")

    created = {"concessionaires": 0, "networks": 0, "units": 0, "tariffs": 0, "readings": 0}
    if networks_count and units_count and tariffs_count:
        logger("[seed] already populated - skipping.")
        return created

    conc_seed = _load_json("concessionaires_seed.json", data_dir)
    networks_seed = _load_json("networks_seed.json", data_dir)
    units_seed = _load_json("units_seed.json", data_dir)
    tariffs_seed = _load_json("tariffs_seed.json", data_dir)
    readings_seed = _load_json("readings_seed.json", data_dir)

    conc_by_name: Dict[str, Concessionaire] = {}
    net_by_name: Dict[str, Network] = {}
    unit_by_name: Dict[str, Unit] = {}

    async with in_transaction():
        for c in conc_seed:
            name = (c.get("name") or "").strip()
            if not name:
                continue
            obj, was_created = await Concessionaire.get_or_create(name=name, defaults={"region": c.get("region")})
            conc_by_name[name] = obj
            created["concessionaires"] += int(was_created)

        for n in networks_seed:
            name = (n.get("name") or "").strip()
            if not name:
                continue
            obj = await Network.get_or_none(name=name)
            if not obj:
                obj = await Network.create(
                    name=name,
                    description=n.get("description"),
                    city=n.get("city"),
                    state=n.get("state"),
                )
                created["networks"] += 1
            net_by_name[name] = obj

        for u in units_seed:
            net = net_by_name.get(u.get("network"))
            if not net:
                continue
            conc = conc_by_name.get(u.get("concessionaire") or "")
            obj = await Unit.get_or_none(name=u["name"], network_id=net.id)
            if not obj:
                obj = await Unit.create(
                    name=u["name"],
                    kind=UnitKind(u["kind"]),
                    network=net,
                    concessionaire=conc,
                    tariff_type=TariffType(u.get("tariff_type") or TariffType.RESIDENTIAL.value),
                    capacity_kw=u.get("capacity_kw"),
                )
                created["units"] += 1
            unit_by_name[u["name"]] = obj

        for t in tariffs_seed:
            conc = conc_by_name.get(t.get("concessionaire") or "")
            if not conc:
                continue
            _, was_created = await Tariff.get_or_create(
                concessionaire=conc,
                type=TariffType(t.get("type") or TariffType.RESIDENTIAL.value),
                start_date=_parse_ts(t["start_date"]),
                defaults={"value": float(t["value"]), "end_date": _parse_ts(t.get("end_date"))},
            )
            created["tariffs"] += int(was_created)

        for r in readings_seed:
            unit = unit_by_name.get(r.get("unit"))
            if not unit:
                continue
            _, was_created = await Reading.get_or_create(
                unit=unit,
                reading_at=_parse_ts(r["reading_at"]),
                defaults={"value": float(r["value"])},
            )
            created["readings"] += int(was_created)

    logger(f"[seed] created => {created}")
    return created
