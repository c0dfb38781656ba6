from pseudoidc.oidc.errors import MissingSubjectError
from pseudoidc.oidc.models import IdentityClaims, Profile, Session


def map_session(claims: IdentityClaims, profile: Profile | None = None) -> Session:
    """
    Derive the application session from verified claims.

    The pseudonym always comes from the identity token `sub`, the profile only
    contributes the display name.
    """
    if not claims.sub or not claims.sub.strip():
        raise MissingSubjectError("Identity token has an empty subject")

    display_name = None
    if profile is not None:
        display_name = profile.name or profile.preferred_username
    display_name = display_name or claims.name or claims.preferred_username

    return Session(
        pseudonym=claims.sub,
        display_name=display_name,
        issuer=claims.iss,
    )
