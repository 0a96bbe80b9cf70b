"""Source row -> TargetOrganization transformation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from ngomigrate.canonical.normalize import (
    clean_description,
    extract_city,
    extract_coverage,
    extract_district,
    extract_province,
    is_blank,
    map_entity_type,
    map_registration_country,
    parse_date,
    parse_staff_count,
    to_text,
)
from ngomigrate.constants import (
    COL_CODE,
    COL_DESCRIPTION,
    COL_ENTITY_TYPE,
    COL_ESTABLISHED,
    COL_INDUSTRY_TARGETS,
    COL_NAME,
    COL_REGISTERED_PLACE,
    COL_REGISTERING_AUTHORITY,
    COL_REGISTRATION_COUNTRY,
    COL_SERVES_ALL,
    COL_STAFF_COUNT,
    COL_STREET,
    COL_WEBSITE,
    COL_WECHAT,
    COL_WEIBO,
    COLUMN_ALIASES,
    DEFAULT_ISSUING_AUTHORITY,
    EDUCATION_FIELD_CATEGORY_HINTS,
    EDUCATION_FIELDS,
    QUALIFICATION_INDICATORS,
    QUALIFICATION_TYPE_HINTS,
    REGISTRATION_CERTIFICATE,
    TARGET_GROUP_FIELDS,
    TARGET_SEPARATOR,
    YES,
)
from ngomigrate.models import (
    Address,
    InternetContact,
    ProjectStatus,
    Qualification,
    QualificationType,
    Service,
    ServiceCategory,
    TargetOrganization,
)
from ngomigrate.transform.contact_user import derive_contact_user

logger = logging.getLogger(__name__)

SourceRecord = Mapping[str, Any]


def get_field(row: SourceRecord, column: str) -> Any:
    """Read a column, falling back to its English alias when blank."""
    value = row.get(column)
    if is_blank(value) and column in COLUMN_ALIASES:
        value = row.get(COLUMN_ALIASES[column])
    return None if is_blank(value) else value


def get_text(row: SourceRecord, column: str) -> str:
    return to_text(get_field(row, column))


def source_name(row: SourceRecord) -> str:
    return get_text(row, COL_NAME)


def _category_for_field(field: str) -> ServiceCategory:
    for hint, category in EDUCATION_FIELD_CATEGORY_HINTS:
        if hint in field:
            return ServiceCategory(category)
    return ServiceCategory.OTHER


def extract_target_groups(row: SourceRecord) -> str:
    values = [to_text(row.get(field)) for field in TARGET_GROUP_FIELDS]
    return TARGET_SEPARATOR.join(v for v in values if v)


def build_services(row: SourceRecord) -> list[Service]:
    """One service per non-empty education field.

    Falls back to a single ``other`` service built from the industry
    target column when no education field is filled in.
    """
    targets = extract_target_groups(row)
    serves_all = to_text(row.get(COL_SERVES_ALL)) == YES

    services = []
    for field in EDUCATION_FIELDS:
        content = to_text(row.get(field))
        if not content:
            continue
        services.append(
            Service(
                service_category=_category_for_field(field),
                service_content=content,
                service_targets=targets,
                support_methods=content,
                project_status=ProjectStatus.ONGOING,
                serves_all_population=serves_all,
            )
        )

    industry = to_text(row.get(COL_INDUSTRY_TARGETS))
    if not services and industry:
        services.append(
            Service(
                service_category=ServiceCategory.OTHER,
                service_content=industry,
                service_targets=industry,
                support_methods="",
                project_status=ProjectStatus.ONGOING,
                serves_all_population=False,
            )
        )
    return services


def _qualification_type_for(indicator: str) -> QualificationType:
    for hint, qualification_type in QUALIFICATION_TYPE_HINTS:
        if hint in indicator:
            return QualificationType(qualification_type)
    return QualificationType.NO_SPECIAL


def build_qualifications(row: SourceRecord) -> list[Qualification]:
    qualifications = [
        Qualification(
            qualification_type=_qualification_type_for(indicator),
            certificate_name=indicator,
            issuing_authority=DEFAULT_ISSUING_AUTHORITY,
        )
        for indicator in QUALIFICATION_INDICATORS
        if not is_blank(row.get(indicator))
    ]

    authority = to_text(row.get(COL_REGISTERING_AUTHORITY))
    if not qualifications and authority:
        qualifications.append(
            Qualification(
                qualification_type=QualificationType.NO_SPECIAL,
                certificate_name=REGISTRATION_CERTIFICATE,
                issuing_authority=authority,
            )
        )
    return qualifications


def build_internet_contact(row: SourceRecord) -> InternetContact:
    return InternetContact(
        website=get_text(row, COL_WEBSITE) or None,
        wechat_public=to_text(row.get(COL_WECHAT)) or None,
        weibo=to_text(row.get(COL_WEIBO)) or None,
    )


def build_address(row: SourceRecord) -> Address:
    # 注册地 carries the province-city-district hierarchy; fall back to the
    # street address when it is missing.
    hierarchy = get_field(row, COL_REGISTERED_PLACE) or get_field(row, COL_STREET)
    return Address(
        province=extract_province(hierarchy),
        city=extract_city(hierarchy),
        district=extract_district(hierarchy),
        street=get_text(row, COL_STREET),
    )


def transform_organization(
    row: SourceRecord, include_contact_user: bool = True
) -> TargetOrganization:
    """Map one spreadsheet row onto the target organization schema."""
    description = get_field(row, COL_DESCRIPTION)

    organization = TargetOrganization(
        name=source_name(row),
        code=get_text(row, COL_CODE),
        entity_type=map_entity_type(get_field(row, COL_ENTITY_TYPE)),
        registration_country=map_registration_country(
            get_field(row, COL_REGISTRATION_COUNTRY)
        ),
        established_date=parse_date(get_field(row, COL_ESTABLISHED)),
        coverage_area=extract_coverage(description),
        description=clean_description(description),
        staff_count=parse_staff_count(get_field(row, COL_STAFF_COUNT)),
        address=build_address(row),
        services=build_services(row),
        internet_contact=build_internet_contact(row),
        qualifications=build_qualifications(row),
    )
    if include_contact_user:
        organization.contact_user = derive_contact_user(row)
    return organization


def transform_rows(
    rows: Iterable[SourceRecord], include_contact_user: bool = True
) -> list[TargetOrganization]:
    """Transform every row, dropping rows that fail or have no name."""
    organizations: list[TargetOrganization] = []
    dropped_unnamed = 0

    for index, row in enumerate(rows, start=1):
        try:
            organization: Optional[TargetOrganization] = transform_organization(
                row, include_contact_user=include_contact_user
            )
        except Exception as exc:
            logger.warning(
                "Transform failed, dropping row %s (%s): %s",
                index,
                source_name(row) or "Unknown",
                exc,
            )
            continue

        if not organization.name:
            dropped_unnamed += 1
            continue
        organizations.append(organization)

    if dropped_unnamed:
        logger.warning("Dropped %s rows without a name", dropped_unnamed)
    logger.info("Transformed %s organizations", len(organizations))
    return organizations
