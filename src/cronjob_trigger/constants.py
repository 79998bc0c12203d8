API_GROUP = "kubeless.io"
API_VERSION = "v1beta1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

PLURAL_FUNCTIONS = "functions"
PLURAL_CRONJOB_TRIGGERS = "cronjobtriggers"

FIELD_MANAGER = "cronjob-trigger-controller"

# Ownership marker for managed CronJobs
LABEL_CREATED_BY = "created-by"
CREATED_BY_VALUE = "kubeless"
LABEL_MANAGED_VERSION = "cronjobtrigger.kubeless.io/managed-version"
MANAGED_VERSION = "v1"

FINALIZER = f"{API_GROUP}/cronjobtrigger"

# kopf keeps handler progress and the last handled state in annotations under this prefix
KOPF_ANNOTATION_PREFIX = "kopf.zalando.org"

CRONJOB_NAME_PREFIX = "trigger-"
CONTAINER_NAME = "trigger"

SUCCESSFUL_JOBS_HISTORY_LIMIT = 3
FAILED_JOBS_HISTORY_LIMIT = 1

# Invocation request
EVENT_NAMESPACE = "cronjobtrigger.kubeless.io"
FUNCTION_PORT = 8080

# Runtime configuration
KUBELESS_NAMESPACE_ENV = "KUBELESS_NAMESPACE"
KUBELESS_CONFIG_ENV = "KUBELESS_CONFIG"
RUNTIME_IMAGE_ENV = "CRONJOB_TRIGGER_RUNTIME_IMAGE"
METRICS_PORT_ENV = "CRONJOB_TRIGGER_METRICS_PORT"
DEFAULT_KUBELESS_NAMESPACE = "kubeless"
DEFAULT_KUBELESS_CONFIG = "kubeless-config"
DEFAULT_RUNTIME_IMAGE = "kubeless/unzip"
CONFIG_KEY_PROVISION_IMAGE = "provision-image"
CONFIG_KEY_PROVISION_IMAGE_SECRET = "provision-image-secret"
