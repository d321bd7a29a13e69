from typing import Optional
from sqlmodel import Session, select
from multichat.models.disabled_model import DisabledModel


def list_disabled_models(session: Session) -> list[DisabledModel]:
    return list(session.exec(select(DisabledModel).order_by(DisabledModel.disabled_at.desc())).all())


def disabled_model_names(session: Session) -> set[str]:
    return {item.model_name for item in session.exec(select(DisabledModel)).all()}


def get_disabled_model(session: Session, model_name: str) -> Optional[DisabledModel]:
    return session.exec(select(DisabledModel).where(DisabledModel.model_name == model_name)).first()


def disable_model(session: Session, model_name: str) -> DisabledModel:
    existing = get_disabled_model(session, model_name)
    if existing:
        return existing
    record = DisabledModel(model_name=model_name)
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def enable_model(session: Session, model_name: str) -> bool:
    record = get_disabled_model(session, model_name)
    if not record:
        return False
    session.delete(record)
    session.commit()
    return True
