from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, Response

from linkforge_app.dependencies import get_resolver
from linkforge_app.schemas.link import ClickMetadata
from linkforge_app.services.outcomes import GoneReason, Outcome, OutcomeKind
from linkforge_app.services.resolver import RedirectResolver

router = APIRouter(tags=["redirect"])

GONE_MESSAGES = {
    GoneReason.DEACTIVATED: "link deactivated",
    GoneReason.EXPIRED: "link expired",
}


def client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def click_metadata(request: Request) -> ClickMetadata:
    return ClickMetadata(
        client_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
        source_ip=client_ip(request),
    )


def outcome_response(outcome: Outcome):
    if outcome.kind == OutcomeKind.REDIRECT:
        # Verbatim: RedirectResponse would percent-encode the stored target
        return Response(status_code=status.HTTP_302_FOUND, headers={"location": outcome.target})
    if outcome.kind == OutcomeKind.NOT_FOUND:
        return PlainTextResponse("not found", status_code=status.HTTP_404_NOT_FOUND)
    if outcome.kind == OutcomeKind.GONE:
        return PlainTextResponse(GONE_MESSAGES[outcome.reason], status_code=status.HTTP_410_GONE)
    return PlainTextResponse("internal error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/{code}")
async def redirect_to_target(
    code: str,
    request: Request,
    resolver: RedirectResolver = Depends(get_resolver),
):
    """
    Redirect to the link's target.

    Click tracking runs as a background task spawned by the resolver, so the
    visitor never waits for (or fails because of) the analytics writes.
    """
    outcome = await resolver.resolve(code, click_metadata(request))
    return outcome_response(outcome)
