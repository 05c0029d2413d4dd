from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Response

from assistdesk.core.deps import get_caller, require_admin
from assistdesk.modules.bookings.schemas import Caller
from .schemas import (
    AssistanceTypeCreateIn,
    AssistanceTypeOut,
    AssistanceTypePatchIn,
    AssistanceTypesListOut,
    FeaturedToonOut,
    FeaturedToonSaveIn,
    OrderIn,
    TemplateOut,
    TemplateSaveIn,
    ToggleIn,
)
from .service import (
    create_assistance_type,
    delete_assistance_type,
    delete_featured_toon,
    delete_template,
    get_assistance_type,
    get_featured_toon,
    get_template,
    list_assistance_types,
    list_featured_toons,
    list_templates,
    patch_assistance_type,
    save_featured_toon,
    save_template,
    set_template_active,
    set_template_order,
)

router = APIRouter(tags=["catalog"])


# --- assistance types ---
@router.get("/assistance-types", response_model=AssistanceTypesListOut)
def api_list_assistance_types(active_only: bool = Query(True)) -> AssistanceTypesListOut:
    return AssistanceTypesListOut(items=list_assistance_types(active_only=active_only))


@router.get("/assistance-types/{type_id}", response_model=AssistanceTypeOut)
def api_get_assistance_type(type_id: str) -> AssistanceTypeOut:
    return get_assistance_type(type_id)


@router.post("/assistance-types", response_model=AssistanceTypeOut)
def api_create_assistance_type(body: AssistanceTypeCreateIn, caller: Caller = Depends(get_caller)) -> AssistanceTypeOut:
    require_admin(caller)
    return create_assistance_type(body)


@router.patch("/assistance-types/{type_id}", response_model=AssistanceTypeOut)
def api_patch_assistance_type(
    type_id: str, body: AssistanceTypePatchIn, caller: Caller = Depends(get_caller)
) -> AssistanceTypeOut:
    require_admin(caller)
    return patch_assistance_type(type_id, body.model_dump(exclude_unset=True))


@router.delete("/assistance-types/{type_id}", status_code=204)
def api_delete_assistance_type(type_id: str, caller: Caller = Depends(get_caller)) -> Response:
    require_admin(caller)
    delete_assistance_type(type_id)
    return Response(status_code=204)


# --- templates ---
@router.get("/assistance-templates", response_model=List[TemplateOut])
def api_list_templates(active_only: bool = Query(True)) -> List[TemplateOut]:
    return list_templates(active_only=active_only)


@router.get("/assistance-templates/{template_id}", response_model=TemplateOut)
def api_get_template(template_id: str) -> TemplateOut:
    return get_template(template_id)


@router.post("/assistance-templates", response_model=TemplateOut)
def api_save_template(body: TemplateSaveIn, caller: Caller = Depends(get_caller)) -> TemplateOut:
    require_admin(caller)
    return save_template(body)


@router.post("/assistance-templates/{template_id}/active", response_model=TemplateOut)
def api_set_template_active(template_id: str, body: ToggleIn, caller: Caller = Depends(get_caller)) -> TemplateOut:
    require_admin(caller)
    return set_template_active(template_id, body.is_active)


@router.post("/assistance-templates/{template_id}/order", response_model=TemplateOut)
def api_set_template_order(template_id: str, body: OrderIn, caller: Caller = Depends(get_caller)) -> TemplateOut:
    require_admin(caller)
    return set_template_order(template_id, body.list_order)


@router.delete("/assistance-templates/{template_id}", status_code=204)
def api_delete_template(template_id: str, caller: Caller = Depends(get_caller)) -> Response:
    require_admin(caller)
    delete_template(template_id)
    return Response(status_code=204)


# --- featured toons ---
@router.get("/featured-toons", response_model=List[FeaturedToonOut])
def api_list_featured_toons() -> List[FeaturedToonOut]:
    return list_featured_toons()


@router.get("/featured-toons/{toon_id}", response_model=FeaturedToonOut)
def api_get_featured_toon(toon_id: str) -> FeaturedToonOut:
    return get_featured_toon(toon_id)


@router.post("/featured-toons", response_model=FeaturedToonOut)
def api_save_featured_toon(body: FeaturedToonSaveIn, caller: Caller = Depends(get_caller)) -> FeaturedToonOut:
    require_admin(caller)
    return save_featured_toon(body)


@router.delete("/featured-toons/{toon_id}", status_code=204)
def api_delete_featured_toon(toon_id: str, caller: Caller = Depends(get_caller)) -> Response:
    require_admin(caller)
    delete_featured_toon(toon_id)
    return Response(status_code=204)
