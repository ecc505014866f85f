import re
from typing import List, Optional, Union

import structlog
from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from llm_gateway.models import (
    HealthStatus,
    LLMModel,
    LLMModelCreate,
    LLMModelUpdate,
    LLMProvider,
    LLMProviderCreate,
    LLMProviderUpdate,
    MASKED_SECRET,
    get_datetime_utc,
)
from llm_gateway.providers.catalog import (
    COMMON_MODELS,
    SEED_VENDORS,
    template_for,
    vendor_kind_for,
)

logger = structlog.get_logger()

# Attempts for writes that can lose a race on a unique index (slug, default flag)
_WRITE_ATTEMPTS = 5

_PROVIDER_FIELDS = set(LLMProvider.model_fields)


def _bulk_update(table):
    # Callers commit right after, which expires the identity map anyway
    return update(table).execution_options(synchronize_session=False)


def _drop_null_writes(table, data: dict) -> dict:
    # an explicit null on a NOT NULL column leaves the stored value alone
    columns = table.__table__.columns
    return {
        k: v for k, v in data.items()
        if v is not None or k not in columns or columns[k].nullable
    }


def _slugify(vendor: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", vendor.lower()).strip("-")
    return slug or "custom"


def _next_slug(*, session: Session, base: str) -> str:
    taken = set(
        session.exec(
            select(LLMProvider.slug).where(
                or_(LLMProvider.slug == base, col(LLMProvider.slug).like(f"{base}-%"))
            )
        ).all()
    )
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def _clear_default_providers(*, session: Session, keep_id: Optional[int] = None) -> None:
    stmt = _bulk_update(LLMProvider).where(col(LLMProvider.is_default).is_(True))
    if keep_id is not None:
        stmt = stmt.where(LLMProvider.id != keep_id)
    session.exec(stmt.values(is_default=False, updated_at=get_datetime_utc()))  # type: ignore[call-overload]


def _clear_default_models(*, session: Session, provider_id: int, keep_id: Optional[int] = None) -> None:
    stmt = _bulk_update(LLMModel).where(
        LLMModel.provider_id == provider_id, col(LLMModel.is_default).is_(True)
    )
    if keep_id is not None:
        stmt = stmt.where(LLMModel.id != keep_id)
    session.exec(stmt.values(is_default=False, updated_at=get_datetime_utc()))  # type: ignore[call-overload]


# Provider CRUD Operations

def create_provider(*, session: Session, provider_in: LLMProviderCreate) -> LLMProvider:
    """Create a provider from its vendor template plus the given overrides.

    The slug is derived from the vendor and de-duplicated with a numeric
    suffix, so two accounts of the same vendor can coexist.
    """
    overrides = provider_in.model_dump(exclude_unset=True, exclude_none=True)
    data = {k: v for k, v in template_for(provider_in.vendor).items() if k in _PROVIDER_FIELDS}
    data.update(overrides)
    data.setdefault("name", provider_in.vendor)
    data["vendor_kind"] = vendor_kind_for(provider_in.vendor)
    make_default = bool(data.pop("is_default", False))

    base = _slugify(provider_in.vendor)
    for attempt in range(1, _WRITE_ATTEMPTS + 1):
        try:
            if make_default:
                _clear_default_providers(session=session)
            db_provider = LLMProvider(
                **data,
                slug=_next_slug(session=session, base=base),
                is_default=make_default,
            )
            session.add(db_provider)
            session.commit()
        except IntegrityError:
            # Another writer took the slug or the default flag first
            session.rollback()
            if attempt == _WRITE_ATTEMPTS:
                raise
            logger.info("provider_create_retry", vendor=provider_in.vendor, attempt=attempt)
            continue
        session.refresh(db_provider)
        logger.info("provider_created", provider=db_provider.slug, vendor_kind=db_provider.vendor_kind.value)
        return db_provider
    raise RuntimeError("unreachable")


def get_provider(*, session: Session, ref: Union[int, str]) -> Optional[LLMProvider]:
    """Look a provider up by numeric id or by slug"""
    if isinstance(ref, int):
        return session.get(LLMProvider, ref)
    if ref.isdigit():
        provider = session.get(LLMProvider, int(ref))
        if provider:
            return provider
    return session.exec(select(LLMProvider).where(LLMProvider.slug == ref)).first()


def list_providers(*, session: Session, include_disabled: bool = False) -> List[LLMProvider]:
    query = select(LLMProvider)
    if not include_disabled:
        query = query.where(col(LLMProvider.is_enabled).is_(True))
    query = query.order_by(col(LLMProvider.priority).desc(), LLMProvider.slug)
    return list(session.exec(query).all())


def update_provider(
    *,
    session: Session,
    provider_id: int,
    provider_in: LLMProviderUpdate,
) -> Optional[LLMProvider]:
    """Partial update. The slug is never rewritten."""
    provider = session.get(LLMProvider, provider_id)
    if not provider:
        return None
    data = _drop_null_writes(LLMProvider, provider_in.model_dump(exclude_unset=True))
    if data.get("api_key") == MASKED_SECRET:
        # client echoed the masked value back; keep the stored key
        data.pop("api_key")
    make_default = data.pop("is_default", None)
    if "vendor" in data and data["vendor"] != provider.vendor:
        # credential policy follows the vendor
        data["vendor_kind"] = vendor_kind_for(data["vendor"])
        data["provider_type"] = template_for(data["vendor"]).get("provider_type", "cloud")
    provider.sqlmodel_update(data)
    provider.updated_at = get_datetime_utc()
    if make_default is False:
        provider.is_default = False
    session.add(provider)
    session.commit()
    if make_default:
        return set_default_provider(session=session, provider_id=provider_id)
    session.refresh(provider)
    return provider


def delete_provider(*, session: Session, provider_id: int) -> bool:
    """Delete a provider and its models.

    Dispatches already in flight keep their resolved snapshot and finish;
    their accounting then matches no row.
    """
    provider = session.get(LLMProvider, provider_id)
    if not provider:
        return False
    session.delete(provider)
    session.commit()
    logger.info("provider_deleted", provider=provider.slug)
    return True


def set_default_provider(*, session: Session, provider_id: int) -> Optional[LLMProvider]:
    """Make one provider the default, clearing the previous one in the same transaction"""
    for attempt in range(1, _WRITE_ATTEMPTS + 1):
        provider = session.get(LLMProvider, provider_id)
        if not provider:
            return None
        try:
            _clear_default_providers(session=session, keep_id=provider_id)
            session.exec(  # type: ignore[call-overload]
                _bulk_update(LLMProvider)
                .where(LLMProvider.id == provider_id)
                .values(is_default=True, updated_at=get_datetime_utc())
            )
            session.commit()
        except IntegrityError:
            # A concurrent set-default committed between our clear and set
            session.rollback()
            if attempt == _WRITE_ATTEMPTS:
                raise
            continue
        session.refresh(provider)
        logger.info("default_provider_set", provider=provider.slug)
        return provider
    return None


def get_default_provider(*, session: Session) -> Optional[LLMProvider]:
    return session.exec(select(LLMProvider).where(col(LLMProvider.is_default).is_(True))).first()


def get_fallback_provider(*, session: Session) -> Optional[LLMProvider]:
    """Highest-priority enabled provider"""
    query = (
        select(LLMProvider)
        .where(col(LLMProvider.is_enabled).is_(True))
        .order_by(col(LLMProvider.priority).desc(), LLMProvider.id)
    )
    return session.exec(query).first()


# Model CRUD Operations

def create_model(*, session: Session, model_in: LLMModelCreate) -> LLMModel:
    db_model = LLMModel.model_validate(model_in)
    if db_model.is_default:
        _clear_default_models(session=session, provider_id=db_model.provider_id)
    session.add(db_model)
    session.commit()
    session.refresh(db_model)
    return db_model


def get_model(*, session: Session, model_id: int) -> Optional[LLMModel]:
    return session.get(LLMModel, model_id)


def get_model_by_vendor_id(*, session: Session, provider_id: int, vendor_model_id: str) -> Optional[LLMModel]:
    query = select(LLMModel).where(
        LLMModel.provider_id == provider_id, LLMModel.model_id == vendor_model_id
    )
    return session.exec(query).first()


def list_models(*, session: Session, provider_id: Optional[int] = None) -> List[LLMModel]:
    query = select(LLMModel)
    if provider_id is not None:
        query = query.where(LLMModel.provider_id == provider_id)
    query = query.order_by(col(LLMModel.is_default).desc(), LLMModel.name)
    return list(session.exec(query).all())


def update_model(*, session: Session, model_id: int, model_in: LLMModelUpdate) -> Optional[LLMModel]:
    db_model = session.get(LLMModel, model_id)
    if not db_model:
        return None
    data = _drop_null_writes(LLMModel, model_in.model_dump(exclude_unset=True))
    make_default = data.pop("is_default", None)
    db_model.sqlmodel_update(data)
    db_model.updated_at = get_datetime_utc()
    if make_default is False:
        db_model.is_default = False
    session.add(db_model)
    session.commit()
    if make_default:
        return set_default_model(session=session, provider_id=db_model.provider_id, model_id=model_id)
    session.refresh(db_model)
    return db_model


def delete_model(*, session: Session, model_id: int) -> bool:
    db_model = session.get(LLMModel, model_id)
    if not db_model:
        return False
    session.delete(db_model)
    session.commit()
    return True


def set_default_model(*, session: Session, provider_id: int, model_id: int) -> Optional[LLMModel]:
    """Make one model the provider's default, clearing the previous one in the same transaction"""
    for attempt in range(1, _WRITE_ATTEMPTS + 1):
        db_model = session.get(LLMModel, model_id)
        if not db_model or db_model.provider_id != provider_id:
            return None
        try:
            _clear_default_models(session=session, provider_id=provider_id, keep_id=model_id)
            session.exec(  # type: ignore[call-overload]
                _bulk_update(LLMModel)
                .where(LLMModel.id == model_id)
                .values(is_default=True, updated_at=get_datetime_utc())
            )
            session.commit()
        except IntegrityError:
            session.rollback()
            if attempt == _WRITE_ATTEMPTS:
                raise
            continue
        session.refresh(db_model)
        return db_model
    return None


def get_default_model(*, session: Session, provider_id: int) -> Optional[LLMModel]:
    query = select(LLMModel).where(
        LLMModel.provider_id == provider_id,
        col(LLMModel.is_default).is_(True),
        col(LLMModel.is_enabled).is_(True),
    )
    return session.exec(query).first()


# Seeding

def seed_default_providers(*, session: Session) -> List[LLMProvider]:
    """Create disabled template providers for well-known vendors not yet present"""
    present = set(session.exec(select(LLMProvider.vendor)).all())
    created = []
    for vendor, priority in SEED_VENDORS.items():
        if vendor in present:
            continue
        created.append(
            create_provider(
                session=session,
                provider_in=LLMProviderCreate(vendor=vendor, is_enabled=False, is_default=False, priority=priority),
            )
        )
    if created:
        logger.info("default_providers_seeded", providers=[p.slug for p in created])
    return created


def seed_common_models(*, session: Session, provider_id: int) -> List[LLMModel]:
    """Upsert the vendor's well-known models for one provider"""
    provider = session.get(LLMProvider, provider_id)
    if not provider:
        return []
    has_default = get_default_model(session=session, provider_id=provider_id) is not None
    for i, spec in enumerate(COMMON_MODELS.get(provider.vendor, [])):
        db_model = get_model_by_vendor_id(session=session, provider_id=provider_id, vendor_model_id=spec["model_id"])
        if db_model:
            db_model.name = spec["name"]
            db_model.context_length = spec.get("context_length")
            db_model.updated_at = get_datetime_utc()
        else:
            db_model = LLMModel(
                provider_id=provider_id,
                is_default=(i == 0 and not has_default),
                is_enabled=True,
                **spec,
            )
        session.add(db_model)
    session.commit()
    return list_models(session=session, provider_id=provider_id)


# Atomic counters. Each is a single UPDATE ... SET col = col + n, so
# concurrent dispatches and probes never lose an increment.

def record_dispatch_success(
    *,
    session: Session,
    provider_id: int,
    vendor_model_id: str,
    prompt_tokens: int,
    completion_tokens: int,
    total_tokens: int,
) -> bool:
    now = get_datetime_utc()
    result = session.exec(  # type: ignore[call-overload]
        _bulk_update(LLMProvider)
        .where(LLMProvider.id == provider_id)
        .values(
            total_requests=LLMProvider.total_requests + 1,
            total_tokens_used=LLMProvider.total_tokens_used + total_tokens,
            consecutive_failures=0,
            health_status=HealthStatus.HEALTHY,
            updated_at=now,
        )
    )
    session.exec(  # type: ignore[call-overload]
        _bulk_update(LLMModel)
        .where(LLMModel.provider_id == provider_id, LLMModel.model_id == vendor_model_id)
        .values(
            total_requests=LLMModel.total_requests + 1,
            total_input_tokens=LLMModel.total_input_tokens + prompt_tokens,
            total_output_tokens=LLMModel.total_output_tokens + completion_tokens,
            updated_at=now,
        )
    )
    session.commit()
    return result.rowcount > 0


def record_dispatch_failure(*, session: Session, provider_id: int, error_message: str) -> bool:
    result = session.exec(  # type: ignore[call-overload]
        _bulk_update(LLMProvider)
        .where(LLMProvider.id == provider_id)
        .values(
            total_errors=LLMProvider.total_errors + 1,
            consecutive_failures=LLMProvider.consecutive_failures + 1,
            health_status=HealthStatus.UNHEALTHY,
            last_error=error_message,
            updated_at=get_datetime_utc(),
        )
    )
    session.commit()
    return result.rowcount > 0


def record_health_check(
    *,
    session: Session,
    provider_id: int,
    success: bool,
    message: str,
    latency_ms: int,
) -> bool:
    now = get_datetime_utc()
    if success:
        values = dict(
            health_status=HealthStatus.HEALTHY,
            last_error=None,
            consecutive_failures=0,
            # moving average, seeded by the first sample
            average_latency=func.coalesce((LLMProvider.average_latency * 4 + latency_ms) / 5, latency_ms),
        )
    else:
        values = dict(
            health_status=HealthStatus.UNHEALTHY,
            last_error=message,
            consecutive_failures=LLMProvider.consecutive_failures + 1,
        )
    result = session.exec(  # type: ignore[call-overload]
        _bulk_update(LLMProvider)
        .where(LLMProvider.id == provider_id)
        .values(last_health_check=now, updated_at=now, **values)
    )
    session.commit()
    return result.rowcount > 0
