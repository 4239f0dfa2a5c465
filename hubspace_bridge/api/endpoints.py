"""Path builders for the Afero cloud API."""


def user_details_path() -> str:
    return "users/me"


def metadevices_path(account_id: str) -> str:
    return f"accounts/{account_id}/metadevices"


def device_state_path(account_id: str, device_id: str) -> str:
    return f"accounts/{account_id}/devices/{device_id}?expansions=attributes,state"


def device_actions_path(account_id: str, device_id: str) -> str:
    return f"accounts/{account_id}/devices/{device_id}/actions"


def join_url(base_url: str, path: str) -> str:
    """Join a base URL and a relative API path."""
    return base_url.rstrip("/") + "/" + path.lstrip("/")
