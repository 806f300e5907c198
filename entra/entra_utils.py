from collections import namedtuple

from common.az_utils import run_az_json, run_az_rest
from common.variables import (ENTRA_ACCESS_TOKEN_VERSION,
                              ENTRA_CLIENT_SECRET_DISPLAY_NAME,
                              ENTRA_SIGN_IN_AUDIENCE, GRAPH_API_URL,
                              MICROSOFT_GRAPH_APP_ID, USER_READ_SCOPE_ID)

ScopeGrant = namedtuple('ScopeGrant', [
    'resource_app_id',
    'scopes',  # list of (scope_id, type)
])

ApplicationDescriptor = namedtuple('ApplicationDescriptor', [
    'display_name',
    'sign_in_audience',
    'redirect_uris',
    'requested_access_token_version',
    'required_resource_access',  # list of ScopeGrant
])

CreatedApplication = namedtuple('CreatedApplication', [
    'id',      # object id, used to address the application in Graph
    'app_id',  # client id
])

############################################
# Descriptor functions
############################################

def get_exposed_scope_ids(application: dict) -> list[str]:
    """
    Return the ids of the enabled delegated permissions an application exposes.
    """
    scopes = (application.get("api") or {}).get("oauth2PermissionScopes") or []
    return [scope["id"] for scope in scopes if scope.get("isEnabled", True)]

def build_scope_grants(gateway_app_id: str | None, gateway_scope_ids: list[str]) -> list[ScopeGrant]:
    if not gateway_app_id:
        return []

    return [
        ScopeGrant(
            resource_app_id=gateway_app_id,
            scopes=[(scope_id, "Scope") for scope_id in gateway_scope_ids],
        ),
        ScopeGrant(
            resource_app_id=MICROSOFT_GRAPH_APP_ID,
            scopes=[(USER_READ_SCOPE_ID, "Scope")],
        ),
    ]

def get_delegated_permission_ids(scope_grants: list[ScopeGrant]) -> list[str]:
    return [
        scope_id
        for grant in scope_grants
        for scope_id, scope_type in grant.scopes
        if scope_type == "Scope" and scope_id != USER_READ_SCOPE_ID
    ]

def build_application_descriptor(display_name: str, redirect_uri: str, scope_grants: list[ScopeGrant]) -> ApplicationDescriptor:
    if not display_name:
        raise ValueError("Application display name must not be empty")
    if not redirect_uri:
        raise ValueError("Application redirect URI must not be empty")

    return ApplicationDescriptor(
        display_name=display_name,
        sign_in_audience=ENTRA_SIGN_IN_AUDIENCE,
        redirect_uris=[redirect_uri],
        requested_access_token_version=ENTRA_ACCESS_TOKEN_VERSION,
        required_resource_access=list(scope_grants),
    )

def to_graph_payload(descriptor: ApplicationDescriptor) -> dict:
    return {
        "displayName": descriptor.display_name,
        "signInAudience": descriptor.sign_in_audience,
        "api": {
            "requestedAccessTokenVersion": descriptor.requested_access_token_version,
        },
        "requiredResourceAccess": [
            {
                "resourceAppId": grant.resource_app_id,
                "resourceAccess": [
                    {"id": scope_id, "type": scope_type}
                    for scope_id, scope_type in grant.scopes
                ],
            }
            for grant in descriptor.required_resource_access
        ],
        "web": {
            "redirectUris": list(descriptor.redirect_uris),
            "implicitGrantSettings": {
                "enableIdTokenIssuance": True,
            },
        },
    }

def build_pre_authorized_applications(existing: list[dict], app_id: str, delegated_permission_ids: list[str]) -> list[dict]:
    return list(existing or []) + [
        {
            "appId": app_id,
            "delegatedPermissionIds": list(delegated_permission_ids),
        }
    ]

############################################
# Graph functions
############################################

def get_application(app_id: str) -> dict | None:
    """
    Fetch an application by client id or object id.
    """
    res = run_az_json(["ad", "app", "show", "--id", app_id])

    return res if isinstance(res, dict) else None

def create_application(descriptor: ApplicationDescriptor) -> CreatedApplication | None:
    res = run_az_rest("POST", f"{GRAPH_API_URL}/applications", to_graph_payload(descriptor))

    if not isinstance(res, dict) or not res.get("id") or not res.get("appId"):
        return None

    return CreatedApplication(id=res["id"], app_id=res["appId"])

def reset_credential(app_id: str) -> str | None:
    """
    Generate a new client secret for the application and return it.
    """
    res = run_az_json([
        "ad", "app", "credential", "reset",
        "--id", app_id,
        "--display-name", ENTRA_CLIENT_SECRET_DISPLAY_NAME,
    ])

    if not isinstance(res, dict):
        return None

    return res.get("password")

def patch_application(object_id: str, partial: dict):
    # Graph answers a successful PATCH with 204 No Content
    return run_az_rest("PATCH", f"{GRAPH_API_URL}/applications/{object_id}", partial)

def pre_authorize_application(gateway_application: dict, app_id: str, delegated_permission_ids: list[str]):
    existing = (gateway_application.get("api") or {}).get("preAuthorizedApplications") or []

    return patch_application(gateway_application["id"], {
        "api": {
            "preAuthorizedApplications": build_pre_authorized_applications(existing, app_id, delegated_permission_ids),
        },
    })
