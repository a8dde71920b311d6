"""Company lookups: display names and notification recipients."""

from dataclasses import dataclass

import structlog

from backinstock_service.identifiers import ResourceKind, numeric_id, to_gid
from backinstock_service.infrastructure.shopify import ShopifyAdminClient

logger = structlog.get_logger()

COMPANY_RECIPIENT_QUERY = """
    query BackInStockCompany($companyId: ID!) {
      company(id: $companyId) {
        id
        name
        mainContact {
          id
          customer {
            email
            defaultEmailAddress {
              emailAddress
            }
          }
        }
      }
    }
"""

COMPANY_NAMES_QUERY = """
    query BackinstockCompanies($ids: [ID!]!) {
      nodes(ids: $ids) {
        ... on Company {
          id
          name
        }
      }
    }
"""


@dataclass(frozen=True)
class Recipient:
    company_id: str
    name: str
    email: str


def main_contact_email(main_contact: dict | None) -> str | None:
    """First non-empty email on a company's main contact."""
    if not main_contact:
        return None
    customer = main_contact.get("customer") or {}
    candidates = (
        (customer.get("defaultEmailAddress") or {}).get("emailAddress"),
        customer.get("email"),
        main_contact.get("email"),
    )
    return next((c for c in candidates if c), None)


class CompanyDirectory:
    def __init__(self, admin: ShopifyAdminClient):
        self.admin = admin

    async def resolve_recipient(self, company_id: str) -> Recipient | None:
        """
        Look up a company's name and main contact email.

        Returns None when the company does not exist or has no email.
        Admin API failures propagate to the caller.
        """
        document = await self.admin.execute(
            COMPANY_RECIPIENT_QUERY,
            {"companyId": to_gid(company_id, ResourceKind.COMPANY)},
        )
        company = (document.get("data") or {}).get("company")
        if not company:
            logger.warning("Company not found", company_id=company_id)
            return None

        email = main_contact_email(company.get("mainContact"))
        if not email:
            logger.warning("No email found for company main contact", company_id=company_id)
            return None

        logger.debug("Derived recipient email", company_id=company_id, email=email)
        return Recipient(company_id=company_id, name=company.get("name") or "", email=email)

    async def lookup_names(self, company_ids: list[str]) -> dict[str, str]:
        """
        Map company ids to display names with a single ``nodes`` query.

        Both the numeric id and the GID are keys in the result, so callers can
        look up whichever form they stored.
        """
        gids = list(dict.fromkeys(to_gid(c, ResourceKind.COMPANY) for c in company_ids if c))
        if not gids:
            return {}

        document = await self.admin.execute(COMPANY_NAMES_QUERY, {"ids": gids})
        names: dict[str, str] = {}
        for node in (document.get("data") or {}).get("nodes") or []:
            if not node or not node.get("id") or not node.get("name"):
                continue
            names[node["id"]] = node["name"]
            names[numeric_id(node["id"])] = node["name"]
        return names
