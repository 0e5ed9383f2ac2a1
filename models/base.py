from sqlalchemy import JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class ModuleStatus(str, enum.Enum):
    """Authoring lifecycle of a module source"""
    DRAFT = "draft"
    TESTING = "testing"
    PUBLISHED = "published"


class SourceType(str, enum.Enum):
    """Where a catalog entry came from"""
    CATALOG = "catalog"
    STUDIO = "studio"
    IMPORTED = "imported"


class PricingTier(str, enum.Enum):
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class PricingType(str, enum.Enum):
    FREE = "free"
    ONE_TIME = "one_time"
    MONTHLY = "monthly"


class BillingCycle(str, enum.Enum):
    ONE_TIME = "one_time"
    MONTHLY = "monthly"


class DeploymentEnvironment(str, enum.Enum):
    STAGING = "staging"
    PRODUCTION = "production"


class DeploymentStatus(str, enum.Enum):
    """Module deployment status"""
    PENDING = "pending"
    DEPLOYING = "deploying"
    SUCCESS = "success"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class RenderStatus(str, enum.Enum):
    """Outcome of mounting one module instance"""
    OK = "ok"
    ERROR = "error"
    TIMEOUT = "timeout"
