from typing import Optional
from sqlmodel import Session, select
from multichat.models.custom_model import CustomModel, CustomProvider
from multichat.schemas.custom_model import CustomModelCreate, CustomModelOut, CustomModelUpdate, CustomProviderOut


def list_custom_providers(session: Session) -> list[CustomProvider]:
    return list(session.exec(select(CustomProvider).order_by(CustomProvider.name.asc())).all())


def get_custom_provider(session: Session, provider_id: str) -> Optional[CustomProvider]:
    return session.exec(select(CustomProvider).where(CustomProvider.id == provider_id)).first()


def get_custom_provider_by_name(session: Session, name: str) -> Optional[CustomProvider]:
    return session.exec(select(CustomProvider).where(CustomProvider.name == name)).first()


def create_custom_provider(session: Session, name: str) -> CustomProvider:
    record = CustomProvider(name=name.strip())
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def delete_custom_provider(session: Session, record: CustomProvider) -> int:
    models = session.exec(select(CustomModel).where(CustomModel.provider_id == record.id)).all()
    for model in models:
        session.delete(model)
    session.delete(record)
    session.commit()
    return len(models)


def list_custom_models(session: Session) -> list[CustomModel]:
    return list(session.exec(select(CustomModel).order_by(CustomModel.created_at.asc())).all())


def find_custom_model(session: Session, model_id: Optional[str]) -> Optional[CustomModel]:
    if not model_id:
        return None
    return session.exec(select(CustomModel).where(CustomModel.id == model_id)).first()


def create_custom_model(session: Session, payload: CustomModelCreate) -> CustomModel:
    record = CustomModel(
        name=payload.name,
        provider_id=payload.provider_id,
        base_model_identifier=payload.base_model_identifier,
        system_prompt=payload.system_prompt or '',
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def update_custom_model(session: Session, record: CustomModel, payload: CustomModelUpdate) -> CustomModel:
    if payload.name is not None:
        record.name = payload.name
    if payload.base_model_identifier is not None:
        record.base_model_identifier = payload.base_model_identifier
    if payload.system_prompt is not None:
        record.system_prompt = payload.system_prompt
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def delete_custom_model(session: Session, record: CustomModel) -> None:
    session.delete(record)
    session.commit()


def to_custom_provider_out(record: CustomProvider) -> CustomProviderOut:
    return CustomProviderOut(id=record.id, name=record.name, created_at=record.created_at)


def to_custom_model_out(record: CustomModel, provider_name: Optional[str] = None) -> CustomModelOut:
    return CustomModelOut(
        id=record.id,
        name=record.name,
        provider_id=record.provider_id,
        provider_name=provider_name,
        base_model_identifier=record.base_model_identifier,
        system_prompt=record.system_prompt,
        created_at=record.created_at,
    )
