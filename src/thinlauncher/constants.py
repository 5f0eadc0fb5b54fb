"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    CONFIGURATION_ERROR = 1
    RESOLUTION_ERROR = 2
    LAUNCH_ERROR = 3


class Scopes(Enum):
    """Dependency scopes understood by the POM reader.

    Args:
        Enum (string): Maven dependency scopes.
    """

    COMPILE = "compile"
    RUNTIME = "runtime"
    PROVIDED = "provided"
    TEST = "test"
    SYSTEM = "system"
    IMPORT = "import"


class ClasspathModes(Enum):
    """Values accepted by the ``thin.classpath`` property.

    Args:
        Enum (string): Report modes.
    """

    PATH = "path"
    PROPERTIES = "properties"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_REPOSITORY_ID = "central"
    DEFAULT_REPOSITORY_URL = "https://repo.maven.apache.org/maven2"
    DEFAULT_EXTENSION = "jar"
    DEFAULT_PROPERTIES_NAME = "thin"
    RUNTIME_SCOPES = ("compile", "runtime")

    PROPERTY_PREFIX = "thin."
    ENV_PREFIX = "THIN_"
    DEPENDENCIES_PREFIX = "dependencies."
    EXCLUSIONS_PREFIX = "exclusions."
    BOMS_PREFIX = "boms."
    REPOSITORIES_PREFIX = "repositories."
    COMPUTED_KEY = "computed"

    META_INF = "META-INF"
    MANIFEST_PATH = "META-INF/MANIFEST.MF"
    MAVEN_META_INF = "META-INF/maven/"
    POM_XML_FILE = "pom.xml"
    SETTINGS_XML_FILE = "settings.xml"
    M2_DIRECTORY = ".m2"
    ROOT_REPOSITORY_DIRECTORY = "repository"
    METADATA_FILE = "maven-metadata.xml"
    START_CLASS_ATTRIBUTE = "Start-Class"
    MAIN_CLASS_ATTRIBUTE = "Main-Class"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for each repository attempt
    MAX_WORKERS = 8
    DOWNLOAD_CHUNK_SIZE = 64 * 1024
    MAX_PARENT_DEPTH = 16
    USER_AGENT = "thinlauncher/0.1"

    # Built-in defaults, the lowest-precedence configuration source
    DEFAULTS = {
        "thin.name": DEFAULT_PROPERTIES_NAME,
        "thin.repo": DEFAULT_REPOSITORY_URL,
        "thin.offline": "false",
        "thin.dryrun": "false",
        "thin.threads": str(MAX_WORKERS),
        "thin.timeout": str(REQUEST_TIMEOUT),
    }
