"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    INTEGRITY_ERROR = 3
    RELOCATION_ERROR = 4
    INJECTION_ERROR = 5


class ChecksumAlgorithms(Enum):
    """Checksum algorithms understood by the verifier.

    The value is the file suffix used by Maven repositories, which is also
    the name hashlib knows the algorithm by.
    """

    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"
    MD5 = "md5"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_STORAGE_DIR = ".depinject"
    DEFAULT_APPLICATION_NAME = "depinject"
    DEFAULT_EXTENSION = "zip"
    DEFAULT_CHECKSUM_ALGORITHM = ChecksumAlgorithms.SHA1.value
    REPOSITORY_URL_CENTRAL = "https://repo1.maven.org/maven2/"

    DOWNLOADS_DIR = "downloads"
    CHECKSUMS_DIR = "checksums"
    RELOCATED_DIR = "relocated"

    SNAPSHOT_SUFFIX = "-SNAPSHOT"
    MAVEN_METADATA_FILE = "maven-metadata.xml"
    POM_NAMESPACE = "{http://maven.apache.org/POM/4.0.0}"
    POM_SCOPES = ("compile", "runtime")

    # Hex digest length -> algorithm, used when a declared checksum has no prefix
    CHECKSUM_LENGTHS = {
        32: ChecksumAlgorithms.MD5.value,
        40: ChecksumAlgorithms.SHA1.value,
        64: ChecksumAlgorithms.SHA256.value,
        128: ChecksumAlgorithms.SHA512.value,
    }

    PROBE_TIMEOUT = 10  # Timeout in seconds for liveness probes
    FETCH_TIMEOUT = 60  # Timeout in seconds for artifact downloads
    DOWNLOAD_CHUNK_SIZE = 64 * 1024
    MAX_WORKERS = 4
    USER_AGENT = "depinject/0.1"

    ENV_PREFIX = "DEPINJECT_"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
