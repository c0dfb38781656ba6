import pytest

from pseudoidc.oidc.errors import MissingSubjectError
from pseudoidc.oidc.models import IdentityClaims, Profile
from pseudoidc.oidc.session import map_session

ISSUER = "https://auth.scramblesolutions.com"


def test_pseudonym_is_subject():
    claims = IdentityClaims(sub="U1", iss=ISSUER, name="Token Name")
    session = map_session(claims)
    assert session.pseudonym == "U1"
    assert session.issuer == ISSUER
    assert session.display_name == "Token Name"


def test_profile_only_contributes_display_name():
    claims = IdentityClaims(sub="U1", iss=ISSUER)
    profile = Profile(id="U1", name="Profile Name", email="user@example.com")
    session = map_session(claims, profile)
    assert session.pseudonym == "U1"
    assert session.display_name == "Profile Name"


def test_display_name_fallbacks():
    claims = IdentityClaims(sub="U1", iss=ISSUER, preferred_username="jdoe")
    assert map_session(claims).display_name == "jdoe"
    assert map_session(claims, Profile(id="U1")).display_name == "jdoe"
    assert map_session(IdentityClaims(sub="U1", iss=ISSUER)).display_name is None


@pytest.mark.parametrize("sub", ["", "   "])
def test_empty_subject(sub):
    with pytest.raises(MissingSubjectError):
        map_session(IdentityClaims(sub=sub, iss=ISSUER))
