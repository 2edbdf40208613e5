"""Document-level directives read from the main file.

Every comment in the main file is scanned, not only doc comments, so the
info block can live anywhere in it. Security scopes may be declared before
or after their scheme; they are applied once the whole file is read.
"""

import logging
from dataclasses import dataclass, field

from goapispec.analyzers.annotations import Directive, iter_directives, quoted_values
from goapispec.errors import AnnotationSyntaxError
from goapispec.models.document import (
    Contact,
    Document,
    License,
    OAuthFlow,
    SecurityScheme,
    Server,
    Tag,
)

logger = logging.getLogger(__name__)

# @SecurityScheme type -> (OpenAPI flow name, takes authorizationUrl, takes tokenUrl)
OAUTH_FLOW_TYPES: dict[str, tuple[str, bool, bool]] = {
    "oauth2AuthCode": ("authorizationCode", True, True),
    "oauth2Implicit": ("implicit", True, False),
    "oauth2ResourceOwnerCredentials": ("password", False, True),
    "oauth2ClientCredentials": ("clientCredentials", False, True),
}


@dataclass
class InfoDirectives:
    """Everything the main file declares about the document.

    Attributes:
        package_aliases: ``@PackageAlias`` renames (last path element -> new name)
    """

    package_aliases: dict[str, str] = field(default_factory=dict)


def apply_info_directives(document: Document, comment_lines: list[str]) -> InfoDirectives:
    """Apply main-file directives to a document.

    Args:
        document: Document to fill in
        comment_lines: Cleaned lines of every comment in the main file

    Returns:
        Settings that affect type resolution

    Raises:
        AnnotationSyntaxError: If a security or alias directive is malformed
    """
    result = InfoDirectives()
    scopes: dict[str, dict[str, str]] = {}

    for directive in iter_directives(comment_lines):
        keyword, value = directive.keyword, directive.value
        if not value:
            continue

        if keyword == "version":
            document.info.version = value
        elif keyword == "title":
            document.info.title = value
        elif keyword == "description":
            document.info.description = value
        elif keyword == "termsofserviceurl":
            document.info.terms_of_service = value
        elif keyword in ("contactname", "contactemail", "contacturl"):
            contact = document.info.contact or Contact()
            if keyword == "contactname":
                contact.name = value
            elif keyword == "contactemail":
                contact.email = value
            else:
                contact.url = value
            document.info.contact = contact
        elif keyword == "licensename":
            document.info.license = document.info.license or License()
            document.info.license.name = value
        elif keyword == "licenseurl":
            document.info.license = document.info.license or License()
            document.info.license.url = value
        elif keyword == "server":
            url, _, description = value.partition(" ")
            document.servers.append(Server(url=url, description=description.strip()))
        elif keyword == "security":
            fields = value.split()
            document.security.append({fields[0]: fields[1:]})
        elif keyword == "securityscheme":
            _add_security_scheme(document, directive)
        elif keyword == "securityscope":
            fields = value.split()
            if len(fields) < 2:
                raise AnnotationSyntaxError(directive.name, f"expected: scheme scope [description], got {value!r}")
            scopes.setdefault(fields[0], {})[fields[1]] = " ".join(fields[2:])
        elif keyword == "tags":
            _add_tag(document, directive)
        elif keyword == "packagealias":
            values = quoted_values(value)
            if len(values) != 2 or not values[0]:
                raise AnnotationSyntaxError(directive.name, f'expected: "original" "new", got {value!r}')
            result.package_aliases[values[0]] = values[1]

    for scheme_name, scheme_scopes in scopes.items():
        scheme = document.components.security_schemes.get(scheme_name)
        if scheme is None or scheme.type != "oauth2":
            logger.warning("Security scopes declared for unknown oauth2 scheme %s", scheme_name)
            continue
        for flow in scheme.flows.values():
            flow.scopes.update(scheme_scopes)

    return result


def _add_security_scheme(document: Document, directive: Directive) -> None:
    fields = directive.value.split()
    if len(fields) < 2:
        raise AnnotationSyntaxError(directive.name, f"expected: name type ..., got {directive.value!r}")

    name, scheme_type, args = fields[0], fields[1], fields[2:]
    schemes = document.components.security_schemes

    def need(count: int, usage: str) -> None:
        if len(args) < count:
            raise AnnotationSyntaxError(
                directive.name, f"{scheme_type} expects: {usage}, got {directive.value!r}"
            )

    if scheme_type in OAUTH_FLOW_TYPES:
        flow_name, has_auth_url, has_token_url = OAUTH_FLOW_TYPES[scheme_type]
        need(int(has_auth_url) + int(has_token_url), "urls")
        scheme = schemes.get(name)
        if scheme is None or scheme.type != "oauth2":
            scheme = SecurityScheme(type="oauth2")
        flow = OAuthFlow()
        if has_auth_url:
            flow.authorization_url = args[0]
        if has_token_url:
            flow.token_url = args[1] if has_auth_url else args[0]
        scheme.flows[flow_name] = flow
    elif scheme_type == "http":
        need(1, "scheme [description]")
        scheme = SecurityScheme(type="http", scheme=args[0], description=" ".join(args[1:]))
    elif scheme_type == "apiKey":
        need(2, "in name [description]")
        scheme = SecurityScheme(
            type="apiKey", location=args[0], name=args[1], description=" ".join(args[2:])
        )
    elif scheme_type == "openIdConnect":
        need(1, "url [description]")
        scheme = SecurityScheme(
            type="openIdConnect", open_id_connect_url=args[0], description=" ".join(args[1:])
        )
    else:
        raise AnnotationSyntaxError(directive.name, f"unknown security scheme type {scheme_type!r}")

    schemes[name] = scheme


def _add_tag(document: Document, directive: Directive) -> None:
    values = quoted_values(directive.value)
    if not values:
        values = [directive.value.strip()]
    name = values[0]
    description = values[1] if len(values) > 1 else ""
    for tag in document.tags:
        if tag.name == name:
            tag.description = description or tag.description
            return
    document.tags.append(Tag(name=name, description=description))
