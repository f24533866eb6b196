DEFAULT_ORIGIN_HOST = "git.centos.org"

REMOTE_NAME = "upstream"

HEADS_REFSPEC = f"+refs/heads/*:refs/remotes/{REMOTE_NAME}/*"
TAGS_REFSPEC = "+refs/tags/*:refs/tags/*"

HEADS_PREFIX = "refs/heads/"
TAGS_PREFIX = "refs/tags/"
REMOTE_HEADS_PREFIX = f"refs/remotes/{REMOTE_NAME}/"

ZERO_OID = "0" * 40


def metadata_filename(package: str) -> str:
    return f".{package}.metadata"


def origin_url(host: str, package: str, branch: str, content_hash: str) -> str:
    return f"https://{host}/sources/{package}/{branch}/{content_hash}"
