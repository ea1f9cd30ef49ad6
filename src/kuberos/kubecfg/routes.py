"""Route serving generated kubeconfig files."""

from fastapi import APIRouter, Request, Response

from kuberos.auth.models import AuthenticationParams
from kuberos.dependencies import Templater

router = APIRouter(tags=["kubecfg"])


@router.get("/kubecfg.yaml", name="kubecfg_yaml")
async def kubecfg_yaml(request: Request, templater: Templater):
    """
    Return a kubeconfig built from the template's clusters, adding a user and
    a context for each based on the URL parameters.
    """
    query: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        query.setdefault(key, []).append(value)

    params = AuthenticationParams.from_wire(query)
    return Response(
        content=templater.render_yaml(params),
        media_type="text/x-yaml",
        headers={"Content-Disposition": "attachment"},
    )
