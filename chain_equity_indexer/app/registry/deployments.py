from __future__ import annotations

import json
import logging
from pathlib import Path

from chain_equity_indexer.app.config import Settings
from chain_equity_indexer.app.domain.errors import DeploymentConfigError
from chain_equity_indexer.app.registry.contracts import ContractRegistry

logger = logging.getLogger(__name__)


def load_deployment_addresses(
    *,
    deployments_path: Path,
    chain_id: int,
    company_name: str,
) -> tuple[str, str]:
    """
    Read (capTable, token) addresses from an exported deployments file.

    Expected structure:
        {"networks": {"<chain_id>": {"<company>": {"capTable": "0x..", "token": "0x.."}}}}
    """
    try:
        data = json.loads(deployments_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise DeploymentConfigError(
            f"Failed to load deployments from {deployments_path}: {exc}. "
            "Make sure contracts have been deployed and exports generated."
        ) from exc

    networks = data.get("networks") if isinstance(data, dict) else None
    if not isinstance(networks, dict):
        raise DeploymentConfigError('Invalid deployments structure: missing "networks" field')

    network = networks.get(str(chain_id))
    if not isinstance(network, dict):
        raise DeploymentConfigError(
            f"No deployment found for chain_id {chain_id}. "
            f"Available chain ids: {', '.join(sorted(networks))}"
        )

    company = network.get(company_name)
    if not isinstance(company, dict):
        raise DeploymentConfigError(
            f"No deployment found for company {company_name!r} on chain_id {chain_id}. "
            f"Available companies: {', '.join(sorted(network))}"
        )

    cap_table = company.get("capTable")
    token = company.get("token")
    if not cap_table or not token:
        raise DeploymentConfigError(
            'Invalid company deployment structure: missing "capTable" or "token" address'
        )

    return cap_table, token


def contract_registry_from_settings(settings: Settings) -> ContractRegistry:
    """
    Explicit CAP_TABLE_ADDRESS / TOKEN_ADDRESS win; otherwise addresses are
    read from the deployments export.
    """
    if settings.cap_table_address and settings.token_address:
        cap_table, token = settings.cap_table_address, settings.token_address
    else:
        cap_table, token = load_deployment_addresses(
            deployments_path=Path(settings.deployments_path),
            chain_id=settings.chain_id,
            company_name=settings.company_name,
        )

    logger.info("Contracts resolved: capTable=%s token=%s", cap_table, token)
    return ContractRegistry.from_addresses(cap_table_address=cap_table, token_address=token)
