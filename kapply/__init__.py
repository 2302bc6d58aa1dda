"""
The main kapply module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the library's top-level interface,
# as it is seen by the outer controllers. So, we export the individual names.

from kapply.building.builders import (
    Builder,
    BuilderMode,
    BuilderRegistry,
    KindBuilder,
    WorkloadBuilder,
    DeploymentBuilder,
    DaemonSetBuilder,
    UnsupportedKindError,
    make_default_registry,
)
from kapply.clients.auth import (
    connected,
)
from kapply.clients.errors import (
    APIError,
    APIClientError,
    APIServerError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
)
from kapply.clients.login import (
    login,
    login_with_kubeconfig,
    login_with_service_account,
)
from kapply.engines.loggers import (
    configure,
    LogFormat,
    ObjectLogger,
)
from kapply.gating.featuregates import (
    FeatureGateCheck,
)
from kapply.gating.preconditions import (
    Precondition,
    PreconditionError,
    PreconditionsSummaryError,
    ReleaseContext,
    run_all,
    summarize,
)
from kapply.gating.upgradeable import (
    UpgradeableCheck,
)
from kapply.helpers.typedefs import (
    Logger,
)
from kapply.helpers.versions import (
    version as __version__,
)
from kapply.running import (
    apply_payload,
    check_preconditions,
    run_apply,
    run_check,
)
from kapply.structs.configuration import (
    Settings,
)
from kapply.structs.credentials import (
    LoginError,
    ConnectionInfo,
)
from kapply.structs.failures import (
    UpdateError,
    HealthError,
    DeletionError,
    StatusDetails,
)
from kapply.structs.references import (
    Resource,
)

__all__ = [
    'Builder', 'BuilderMode', 'BuilderRegistry', 'make_default_registry',
    'KindBuilder', 'WorkloadBuilder', 'DeploymentBuilder', 'DaemonSetBuilder',
    'UnsupportedKindError',
    'connected',
    'login',
    'login_with_kubeconfig',
    'login_with_service_account',
    'LoginError',
    'ConnectionInfo',
    'APIError', 'APIClientError', 'APIServerError',
    'APIUnauthorizedError', 'APIForbiddenError', 'APINotFoundError', 'APIConflictError',
    'configure', 'LogFormat', 'ObjectLogger', 'Logger',
    'Precondition', 'PreconditionError', 'PreconditionsSummaryError', 'ReleaseContext',
    'FeatureGateCheck', 'UpgradeableCheck',
    'run_all', 'summarize',
    'apply_payload', 'check_preconditions', 'run_apply', 'run_check',
    'Settings',
    'Resource',
    'UpdateError', 'HealthError', 'DeletionError', 'StatusDetails',
]
