"""
Configuration constants for repman
=================================================================================
PURPOSE: Centralized constants for directory layout, file names, external
         endpoints and defaults used across the repository manager.

USAGE: Imported by the modules under repman/. Environment variables read in
       repman.common.environment and repman.common.config_loader can override
       the locations below.

ORGANIZATION:
1. Directory layout
2. File names and suffixes
3. AUR endpoints
4. Build defaults
5. Required external tools
"""

# ==============================================================================
# 1. DIRECTORY LAYOUT
# ==============================================================================

# Sub-directory created below $XDG_CONFIG_HOME and $XDG_CACHE_HOME
APP_DIR_NAME = "repman"

# Below the cache root
CHROOTS_SUBDIR = "chroots"
REPOS_SUBDIR = "repos"
LOCKS_SUBDIR = "locks"
TMP_SUBDIR = "tmp"

# Below a chroot container directory; the pristine root used by makechrootpkg
CHROOT_ROOT_SUBDIR = "root"

# Below the per-run scratch directory tmp/<pid>
TMP_PKG_SUBDIR = "pkg"
TMP_PKGBUILD_SUBDIR = "pkgbuild"
TMP_LISTING_SUBDIR = "listing"

# ==============================================================================
# 2. FILE NAMES AND SUFFIXES
# ==============================================================================

# Repository configuration document in the config root
REPOS_CONFIG_FILE = "repos.yaml"

# System-wide settings (vcs_suffixes); REPMAN_SYSTEM_CONFIG overrides it
SYSTEM_CONFIG_FILE = "/etc/repman.yaml"

DB_ARCHIVE_SUFFIX = ".db.tar.xz"
FILES_ARCHIVE_SUFFIX = ".files.tar.xz"
SIG_SUFFIX = ".sig"

PKGBUILD_FILE = "PKGBUILD"

# Keys accepted in a repository entry of repos.yaml
REPO_KEY_SERVER = "Server"
REPO_KEY_DB_NAME = "DBName"
REPO_KEY_SIGN_DB = "SignDB"

# System fallbacks for the configuration cascade
SYSTEM_PACMAN_CONF = "/etc/pacman.conf"
SYSTEM_MAKEPKG_CONF = "/etc/makepkg.conf"

# ==============================================================================
# 3. AUR ENDPOINTS
# ==============================================================================

AUR_RPC_URL = "https://aur.archlinux.org/rpc/?v=5"
AUR_GIT_URL = "https://aur.archlinux.org/{base}.git"
AUR_TIMEOUT = 30

# ==============================================================================
# 4. BUILD DEFAULTS
# ==============================================================================

# Used when makepkg.conf does not define PKGEXT
DEFAULT_PKGEXT = ".pkg.tar.zst"

# Package names ending in -<suffix> are treated as VCS packages
DEFAULT_VCS_SUFFIXES = ["git", "svn", "hg", "bzr", "cvs", "darcs"]

# Packages installed into a fresh chroot
CHROOT_BASE_PACKAGES = ["base-devel"]

# Suffix of split debug packages; their absence after a build is tolerated
DEBUG_PKG_SUFFIX = "-debug"

# ==============================================================================
# 5. REQUIRED EXTERNAL TOOLS
# ==============================================================================

# Checked before a command starts; the storage backend adds its own tool
REQUIRED_TOOLS = {
    "build": ["makepkg", "git"],
    "chroot": ["makechrootpkg", "mkarchroot", "arch-nspawn"],
    "repo": ["repo-add", "repo-remove"],
    "sign": ["gpg"],
}
