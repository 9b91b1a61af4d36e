"""Flatten Shopify's nested ``deliveryProfiles`` GraphQL graph into zone/rate records.

Walk order is profiles -> location groups -> zones -> method definitions ->
conditions. Malformed sub-trees are skipped and recorded as ``SkipRecord`` so a
single bad zone never aborts the sync; only a payload without
``data.deliveryProfiles.edges`` is fatal.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .errors import StructuralError

logger = logging.getLogger(__name__)

REST_OF_WORLD = '*'


@dataclass(frozen=True)
class MoneyCriteria:
    amount: float
    currency: Optional[str] = None


@dataclass(frozen=True)
class WeightCriteria:
    value: float
    unit: Optional[str] = None


@dataclass(frozen=True)
class UnknownCriteria:
    typename: Optional[str] = None


Criteria = Union[MoneyCriteria, WeightCriteria, UnknownCriteria]


@dataclass(frozen=True)
class MethodCondition:
    field: str
    operator: str
    criteria: Criteria


@dataclass
class MethodDefinition:
    external_id: str
    active: bool
    name: str
    price: Optional[float] = None
    currency: Optional[str] = None
    conditions: List[MethodCondition] = field(default_factory=list)
    raw_conditions: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class LocationGroupZone:
    external_id: str
    name: Optional[str]
    countries: List[str] = field(default_factory=list)
    provinces: List[str] = field(default_factory=list)
    methods: List[MethodDefinition] = field(default_factory=list)


@dataclass
class DeliveryProfile:
    id: Optional[str]
    name: Optional[str]
    default: bool = False
    zones: List[LocationGroupZone] = field(default_factory=list)


@dataclass(frozen=True)
class SkipRecord:
    level: str  # profile | location_group | zone | method
    reason: str
    ref: Optional[str] = None


@dataclass
class ParseResult:
    profiles: List[DeliveryProfile] = field(default_factory=list)
    skipped: List[SkipRecord] = field(default_factory=list)

    @property
    def zones(self) -> List[LocationGroupZone]:
        return [z for p in self.profiles for z in p.zones]

    def skip_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for s in self.skipped:
            counts[s.level] = counts.get(s.level, 0) + 1
        return counts


def _edges(container: Any) -> Optional[List[Any]]:
    if not isinstance(container, dict):
        return None
    edges = container.get('edges')
    return edges if isinstance(edges, list) else None


def _to_float(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise StructuralError(f'{what} is not numeric: {value!r}')


def parse_criteria(raw: Any) -> Criteria:
    if not isinstance(raw, dict):
        return UnknownCriteria()
    typename = raw.get('__typename')
    if typename == 'MoneyV2' or (typename is None and 'amount' in raw):
        return MoneyCriteria(_to_float(raw.get('amount'), 'condition amount'), raw.get('currencyCode'))
    if typename == 'Weight' or (typename is None and 'value' in raw):
        return WeightCriteria(_to_float(raw.get('value'), 'condition weight'), raw.get('unit'))
    return UnknownCriteria(typename)


def parse_condition(raw: Dict[str, Any]) -> MethodCondition:
    return MethodCondition(
        field=str(raw.get('field') or ''),
        operator=str(raw.get('operator') or ''),
        criteria=parse_criteria(raw.get('conditionCriteria')),
    )


def parse_method(node: Any) -> MethodDefinition:
    if not isinstance(node, dict):
        raise StructuralError('method definition node missing')
    raw_conditions = node.get('methodConditions') or []
    if not isinstance(raw_conditions, list):
        raise StructuralError('methodConditions is not a list')
    price = None
    currency = None
    provider = node.get('rateProvider') or {}
    if not isinstance(provider, dict):
        raise StructuralError('rateProvider is not an object')
    money = provider.get('price') or {}
    if not isinstance(money, dict):
        raise StructuralError('rate price is not an object')
    if money.get('amount') not in (None, ''):
        price = _to_float(money.get('amount'), 'rate price')
        currency = money.get('currencyCode')
    return MethodDefinition(
        external_id=str(node.get('id')),
        active=bool(node.get('active')),
        name=node.get('name') or '',
        price=price,
        currency=currency,
        conditions=[parse_condition(c) for c in raw_conditions if isinstance(c, dict)],
        raw_conditions=list(raw_conditions),
    )


def _country_code(country: Dict[str, Any]) -> Optional[str]:
    code = country.get('code')
    if isinstance(code, dict):
        if code.get('countryCode'):
            return code['countryCode']
        if code.get('restOfWorld'):
            return REST_OF_WORLD
        return None
    return country.get('countryCode') or code or None


def parse_zone_countries(raw_countries: Any) -> tuple[List[str], List[str]]:
    countries: List[str] = []
    provinces: List[str] = []
    for country in raw_countries if isinstance(raw_countries, list) else []:
        if not isinstance(country, dict):
            continue
        code = _country_code(country)
        if code:
            countries.append(code)
        provs = country.get('provinces')
        for prov in provs if isinstance(provs, list) else []:
            if isinstance(prov, dict) and prov.get('code'):
                provinces.append(prov['code'])
    return countries, provinces


def parse_zone(zone_node: Any, skipped: List[SkipRecord]) -> Optional[LocationGroupZone]:
    zone = zone_node.get('zone') if isinstance(zone_node, dict) else None
    if not isinstance(zone, dict):
        logger.warning('Skipping zone due to missing data')
        skipped.append(SkipRecord('zone', 'missing zone'))
        return None
    if not zone.get('id'):
        logger.warning('Skipping zone without id: %s', zone.get('name'))
        skipped.append(SkipRecord('zone', 'missing zone id', zone.get('name')))
        return None
    countries, provinces = parse_zone_countries(zone.get('countries'))
    parsed = LocationGroupZone(
        external_id=str(zone['id']),
        name=zone.get('name'),
        countries=countries,
        provinces=provinces,
    )
    method_edges = _edges(zone_node.get('methodDefinitions'))
    if method_edges is None:
        logger.warning('No method definitions found for zone: %s', parsed.external_id)
        return parsed
    for edge in method_edges:
        node = edge.get('node') if isinstance(edge, dict) else None
        if not isinstance(node, dict) or not node.get('id'):
            skipped.append(SkipRecord('method', 'missing method id', parsed.external_id))
            continue
        if not node.get('active'):
            logger.debug('Skipping inactive method %s', node.get('id'))
            skipped.append(SkipRecord('method', 'inactive', str(node.get('id'))))
            continue
        try:
            parsed.methods.append(parse_method(node))
        except StructuralError as e:
            logger.warning('Skipping method %s: %s', node.get('id'), e)
            skipped.append(SkipRecord('method', str(e), str(node.get('id'))))
    return parsed


def _location_group_id(group: Any) -> Optional[str]:
    location_group = group.get('locationGroup') if isinstance(group, dict) else None
    return location_group.get('id') if isinstance(location_group, dict) else None


def parse_profile(node: Dict[str, Any], skipped: List[SkipRecord]) -> Optional[DeliveryProfile]:
    groups = node.get('profileLocationGroups')
    if not isinstance(groups, list) or not groups:
        logger.warning('Skipping profile due to missing location groups: %s', node.get('id'))
        skipped.append(SkipRecord('profile', 'missing location groups', node.get('id')))
        return None
    profile = DeliveryProfile(id=node.get('id'), name=node.get('name'), default=bool(node.get('default')))
    for group in groups:
        zone_edges = _edges(group.get('locationGroupZones')) if isinstance(group, dict) else None
        if zone_edges is None:
            group_id = _location_group_id(group)
            logger.warning('Skipping location group due to missing zones: %s', group_id)
            skipped.append(SkipRecord('location_group', 'missing zone edges', group_id))
            continue
        for edge in zone_edges:
            zone = parse_zone(edge.get('node') if isinstance(edge, dict) else None, skipped)
            if zone is not None:
                profile.zones.append(zone)
    return profile


def parse_delivery_profiles(payload: Dict[str, Any]) -> ParseResult:
    """Parse a raw ``deliveryProfiles`` response (with its ``data`` envelope)."""
    data = payload.get('data') if isinstance(payload, dict) else None
    edges = _edges(data.get('deliveryProfiles')) if isinstance(data, dict) else None
    if edges is None:
        raise StructuralError('Invalid response structure from Shopify')
    result = ParseResult()
    for edge in edges:
        node = edge.get('node') if isinstance(edge, dict) else None
        if not isinstance(node, dict):
            result.skipped.append(SkipRecord('profile', 'missing profile node'))
            continue
        profile = parse_profile(node, result.skipped)
        if profile is not None:
            result.profiles.append(profile)
    logger.info('Parsed %d zones from %d profiles (%d skipped nodes)',
                len(result.zones), len(result.profiles), len(result.skipped))
    return result
