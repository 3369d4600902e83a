"""
Go toolchain from the official go.dev binary tarballs.
"""

from __future__ import annotations

import os
from dataclasses import replace

from ..artifacts import ArtifactSpec
from ..commands import probe_version
from ..config import Config
from ..logging_config import success
from ..pipeline import ArtifactPipeline, InstallResult
from ..versions import latest_go_version
from .base import Installer


GO_SPEC = ArtifactSpec(
    tool="go",
    base_url="https://go.dev/dl",
    filename="go{version}.linux-{arch}.{ext}",
    formats=("tar.gz",),
    checksum_suffix=".sha256",
)

GO_BINARIES = ("go", "gofmt")
GOPATH_DIRS = ("bin", "src", "pkg")


def go_rc_lines(prefix: str) -> tuple[str, ...]:
    return (
        f'export PATH="$PATH:{prefix}/go/bin:$HOME/go/bin"',
        'export GOPATH="$HOME/go"',
    )


class GoInstaller(Installer):
    name = "go"
    title = "Go (Golang) Installer for Linux"
    summary_title = "Go Installation Summary"

    def pipeline(self, config: Config) -> ArtifactPipeline:
        fetcher = self.get_fetcher(config)
        return ArtifactPipeline(
            config,
            GO_SPEC,
            vendor="go",
            lookup=lambda: latest_go_version(fetcher),
            fetcher=fetcher,
            install_subdir="lib/golang",
            stable_name="go",
            binaries=GO_BINARIES,
            rc_lines=go_rc_lines(config.prefix),
            machine=self.machine,
            kernel=self.kernel,
        )

    def install(self, config: Config) -> InstallResult:
        result = self.pipeline(config).run()
        if result.dry_run:
            return result

        gopath = os.path.join(config.home, "go")
        for sub in GOPATH_DIRS:
            os.makedirs(os.path.join(gopath, sub), exist_ok=True)

        go_bin = os.path.join(result.stable_link, "bin", "go")
        reported = probe_version(go_bin, ("version",))
        result = replace(
            result,
            summary_rows=(
                ("Version", f"go{reported}" if reported else f"go{result.installed_version}"),
                ("GOROOT", result.stable_link),
                ("GOPATH", "$HOME/go"),
            ),
        )
        success(f"Go {result.installed_version} installed successfully!")
        return self.with_activation_hint(result, config)
