import os
from dotenv import load_dotenv

# Load environment variables from .env file in the working directory
load_dotenv()

# --- Internal vault ---
KEYRING_SERVICE = os.environ.get('INFRA_SCAN_KEYRING_SERVICE', 'infra-scan')
USER_VAULTS_KEY = 'user-vaults'

# --- Backend clients ---
VAULT_TIMEOUT = float(os.environ.get('INFRA_SCAN_VAULT_TIMEOUT', 30))

# Legacy token for HashiCorp Vault, only used when no credential and no
# explicit token option is configured
LEGACY_VAULT_TOKEN_ENV = 'VAULT_TOKEN'

# KV v2 secrets engine mount
HASHICORP_MOUNT_POINT = os.environ.get('INFRA_SCAN_HASHICORP_MOUNT', 'secret')

# --- Discovery ---
DISCOVERY_WORKERS = int(os.environ.get('INFRA_SCAN_DISCOVERY_WORKERS', 8))
AWS_DEFAULT_REGION = os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-east-1'))

# --- Platform ids ---
PLATFORM_ID_HOST = '//platformid.api.infra-scan.io'
