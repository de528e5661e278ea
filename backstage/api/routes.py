"""
API routes for the Backstage HTTP gateway.

Every route is a thin wrapper over a Backstage service. The acting user is
named by the X-User-Email header and resolved to a stored user; role checks
happen in the services.

The gateway does not authenticate. Login is passwordless, so anyone who can
reach it can act as any stored user, the bootstrap dev included. Deploy it
only behind a proxy that authenticates the caller and sets X-User-Email
itself, stripping any client-supplied value.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ..access import Capability
from ..core import Backstage
from ..errors import NotFoundError
from ..models import User
from ..services import pending, published, sort_by_last_activity, threads_in_community
from ..sharing import build_share_link, decode_share_fragment

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Backstage"])

GENERAL_COMMUNITY = "general"


# --- Request Models ---


class LoginRequest(BaseModel):
    """Sign in (or sign up) by email."""

    email: str = Field(..., description="Account email")


class ChangesRequest(BaseModel):
    """Partial update keyed by persisted field names."""

    changes: dict[str, Any] = Field(..., description="Fields to update")


class NoteCreateRequest(BaseModel):
    title: str = Field("", description="Note title")
    content: str = Field("", description="Note body")


class CommunityCreateRequest(BaseModel):
    name: str
    description: str = ""


class ThreadCreateRequest(BaseModel):
    community_id: str | None = Field(None, description="Community, or null for general")
    title: str
    content: str


class PostCreateRequest(BaseModel):
    content: str


class PublicationCreateRequest(BaseModel):
    title: str
    content: str


class ReviewRequest(BaseModel):
    publish: bool = Field(..., description="True publishes, false rejects (deletes)")


class RoleRequest(BaseModel):
    role: str = Field(..., description="user, admin or dev")


class ShareDecodeRequest(BaseModel):
    fragment: str = Field(..., description="#note=..., note=... or a full share URL")


# --- Dependencies ---


def get_backstage(request: Request) -> Backstage:
    """Get Backstage from app state."""
    return request.app.state.backstage


async def get_actor(
    request: Request,
    backstage: Backstage = Depends(get_backstage),
) -> User:
    """Resolve the acting user from the X-User-Email header.

    The header is trusted as-is; an authenticating proxy in front of the
    gateway must own it (see module docstring).
    """
    email = request.headers.get("X-User-Email")
    if not email:
        raise HTTPException(status_code=401, detail="X-User-Email header is required")
    try:
        return await backstage.identity.get_user(email)
    except NotFoundError:
        raise HTTPException(status_code=401, detail=f"Unknown user: {email}")


# --- Auth Routes ---


@router.post("/auth/login")
async def login(body: LoginRequest, backstage: Backstage = Depends(get_backstage)):
    session = await backstage.identity.login(body.email)
    return {"user": session.user.to_dict(), "startedAt": session.started_at}


@router.post("/auth/logout", status_code=204)
async def logout(backstage: Backstage = Depends(get_backstage)):
    await backstage.identity.logout()


@router.get("/me")
async def get_me(actor: User = Depends(get_actor)):
    return actor.to_dict()


@router.patch("/me")
async def update_me(
    body: ChangesRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    user = await backstage.identity.update_profile(actor, body.changes)
    return user.to_dict()


# --- Web Config Routes ---


@router.get("/config")
async def get_config(backstage: Backstage = Depends(get_backstage)):
    return backstage.web_config.get_web_config().to_dict()


@router.patch("/config")
async def update_config(
    body: ChangesRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    config = await backstage.web_config.update_web_config(body.changes, actor=actor)
    return config.to_dict()


# --- Note Routes ---


@router.get("/notes")
async def list_notes(
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    notes = await backstage.notes.get_notes(actor.email)
    return [n.to_dict() for n in notes]


@router.post("/notes", status_code=201)
async def create_note(
    body: NoteCreateRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    note = await backstage.notes.create_note(actor.email, body.title, body.content)
    return note.to_dict()


@router.get("/notes/{note_id}")
async def get_note(
    note_id: str,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    note = await backstage.notes.get_note(note_id)
    backstage.policy.require_owner(actor, note.owner_email, note_id)
    return note.to_dict()


@router.patch("/notes/{note_id}")
async def update_note(
    note_id: str,
    body: ChangesRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    note = await backstage.notes.update_own_note(actor, note_id, body.changes)
    return note.to_dict()


@router.delete("/notes/{note_id}", status_code=204)
async def delete_note(
    note_id: str,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    await backstage.notes.delete_own_note(actor, note_id)


@router.post("/notes/{note_id}/summary")
async def summarize_note(
    note_id: str,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    note = await backstage.summarize_note(actor, note_id)
    return note.to_dict()


@router.get("/notes/{note_id}/share")
async def share_note(
    request: Request,
    note_id: str,
    base_url: str | None = Query(None, description="Client URL to build the link on"),
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    note = await backstage.notes.get_note(note_id)
    backstage.policy.require_owner(actor, note.owner_email, note_id)
    base = base_url or request.app.state.settings.share_base_url
    return {"link": build_share_link(base, note)}


@router.post("/share/decode")
async def decode_share(body: ShareDecodeRequest):
    return decode_share_fragment(body.fragment).public_dict()


# --- Discussion Routes ---


@router.get("/communities")
async def list_communities(backstage: Backstage = Depends(get_backstage)):
    return [c.to_dict() for c in await backstage.discussions.get_communities()]


@router.post("/communities", status_code=201)
async def create_community(
    body: CommunityCreateRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    community = await backstage.discussions.create_community(
        body.name, body.description, actor.email
    )
    return community.to_dict()


@router.get("/threads")
async def list_threads(
    community: str | None = Query(
        None, description=f"Community id, or '{GENERAL_COMMUNITY}'; omit for all"
    ),
    backstage: Backstage = Depends(get_backstage),
):
    threads = await backstage.discussions.get_threads()
    if community is not None:
        community_id = None if community == GENERAL_COMMUNITY else community
        threads = threads_in_community(threads, community_id)
    return [t.to_dict() for t in sort_by_last_activity(threads)]


@router.post("/threads", status_code=201)
async def create_thread(
    body: ThreadCreateRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    thread = await backstage.discussions.create_thread(
        body.community_id, body.title, body.content, actor
    )
    return thread.to_dict()


@router.post("/threads/{thread_id}/posts", status_code=201)
async def add_post(
    thread_id: str,
    body: PostCreateRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    thread = await backstage.discussions.add_post_to_thread(thread_id, body.content, actor)
    return thread.to_dict()


@router.post("/threads/{thread_id}/posts/{post_id}/like")
async def toggle_like(
    thread_id: str,
    post_id: str,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    thread = await backstage.discussions.toggle_post_like(thread_id, post_id, actor.email)
    return thread.to_dict()


# --- Publication Routes ---


@router.get("/publications")
async def list_publications(
    status: str = Query("published", description="published or pending"),
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    publications = await backstage.publications.get_publications()
    if status == "pending":
        backstage.policy.require(actor, Capability.PUBLISH)
        items = pending(publications)
    elif status == "published":
        items = published(publications)
    else:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    return [p.to_dict() for p in items]


@router.post("/publications", status_code=201)
async def submit_publication(
    body: PublicationCreateRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    proposal = await backstage.publications.submit_publication_proposal(
        body.title, body.content, actor
    )
    return proposal.to_dict()


@router.post("/publications/direct", status_code=201)
async def publish_directly(
    body: PublicationCreateRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    publication = await backstage.publications.create_direct_publication(
        body.title, body.content, actor
    )
    return publication.to_dict()


@router.post("/publications/{publication_id}/review")
async def review_publication(
    publication_id: str,
    body: ReviewRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    result = await backstage.publications.review_publication(publication_id, body.publish, actor)
    if result is None:
        raise HTTPException(status_code=404, detail=f"publication not found: {publication_id}")
    return [p.to_dict() for p in result]


@router.delete("/publications/{publication_id}")
async def delete_publication(
    publication_id: str,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    result = await backstage.publications.delete_publication(publication_id, actor)
    return [p.to_dict() for p in result]


# --- Admin Routes ---


@router.get("/admin/overview")
async def admin_overview(
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    return (await backstage.stats.admin_overview(actor)).to_dict()


@router.get("/admin/users")
async def list_users(
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    return [u.to_dict() for u in await backstage.identity.get_all_users(actor)]


@router.put("/admin/users/{email}/role")
async def set_role(
    email: str,
    body: RoleRequest,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    user = await backstage.identity.set_user_role(actor, email, body.role)
    if user is None:
        return {"pending": True, "email": email.lower(), "role": body.role}
    return {"pending": False, "user": user.to_dict()}


@router.delete("/admin/users/{email}", status_code=204)
async def delete_user(
    email: str,
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    await backstage.identity.delete_user(actor, email)


@router.get("/admin/role-grants")
async def list_role_grants(
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    grants = await backstage.identity.pending_role_grants(actor)
    return {email: role.value for email, role in grants.items()}


# --- Misc Routes ---


@router.get("/stats/notes")
async def my_note_stats(
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    return (await backstage.stats.user_note_stats(actor)).to_dict()


@router.get("/gifs")
async def search_gifs(
    q: str = Query("", description="Search query"),
    actor: User = Depends(get_actor),
    backstage: Backstage = Depends(get_backstage),
):
    return await backstage.search_gifs(q)
