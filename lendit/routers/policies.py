"""Platform policies: active version, version history, admin publish."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
from lendit.database import get_db
from lendit.dependencies import require_admin
from lendit.models.user import User
from lendit.schemas.policy import PolicyPublish, PolicyResponse, PolicyVersionInfo
from lendit.services.policy import get_active_policy, get_policy_version, list_policy_versions, publish_policy
from lendit.services.policy_pdf import policy_to_pdf

router = APIRouter(prefix="/policies", tags=["policies"])


@router.get("/{slug}", response_model=PolicyResponse)
def get_policy(slug: str, db: Session = Depends(get_db)):
    return PolicyResponse.model_validate(get_active_policy(db, slug))


@router.get("/{slug}/versions", response_model=list[PolicyVersionInfo])
def get_policy_versions(slug: str, db: Session = Depends(get_db)):
    return [PolicyVersionInfo.model_validate(d) for d in list_policy_versions(db, slug)]


@router.get("/{slug}/versions/{version}", response_model=PolicyResponse)
def get_policy_at_version(slug: str, version: int, db: Session = Depends(get_db)):
    return PolicyResponse.model_validate(get_policy_version(db, slug, version))


@router.get("/{slug}/versions/{version}/pdf")
def get_policy_pdf(slug: str, version: int, db: Session = Depends(get_db)):
    doc = get_policy_version(db, slug, version)
    filename = f"Lendit-{doc.slug}-v{doc.version}.pdf"
    return Response(
        content=policy_to_pdf(doc),
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


@router.post("/{slug}/publish", response_model=PolicyResponse, status_code=201)
def publish(
    request: Request,
    slug: str,
    data: PolicyPublish,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    doc = publish_policy(
        db,
        slug,
        data.content,
        title=data.title,
        short_summary=data.short_summary,
        actor=admin,
        request=request,
    )
    return PolicyResponse.model_validate(doc)
