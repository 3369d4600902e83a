"""
Node.js from the official nodejs.org binary tarballs.

Without an exact version the newest release of a channel is used
(latest-v22.x by default, or latest-v<major>.x when a major is given).
"""

from __future__ import annotations

import os
from dataclasses import replace

from ..artifacts import ArtifactSpec
from ..commands import probe_version
from ..config import Config
from ..install_plan import InstallStep
from ..linker import needs_sudo
from ..logging_config import success
from ..pipeline import ArtifactPipeline, InstallResult
from ..versions import FALLBACK_VERSIONS, latest_node_version
from .base import Installer


NODE_BINARIES = ("node", "npm", "npx", "corepack")


def node_spec(force_gz: bool = False) -> ArtifactSpec:
    formats = ("tar.gz", "tar.xz") if force_gz else ("tar.xz", "tar.gz")
    return ArtifactSpec(
        tool="node",
        base_url="https://nodejs.org/download/release/v{version}",
        filename="node-v{version}-linux-{arch}.{ext}",
        formats=formats,
        manifest_name="SHASUMS256.txt",
    )


def node_rc_lines(prefix: str) -> tuple[str, ...]:
    return (f'export PATH="$PATH:{prefix}/bin:{prefix}/node/bin"',)


class NodeInstaller(Installer):
    name = "node"
    title = "Node.js Installer for Linux"
    summary_title = "Node.js Installation Summary"

    def pipeline(self, config: Config) -> ArtifactPipeline:
        fetcher = self.get_fetcher(config)
        channel = config.node.effective_channel
        # The built-in fallback is a 22.x release; other lines have none
        allow_fallback = FALLBACK_VERSIONS["node"].split(".")[0] == config.node.major and not config.node.channel
        return ArtifactPipeline(
            config,
            node_spec(config.node.force_gz),
            vendor="node",
            lookup=lambda: latest_node_version(fetcher, channel),
            fetcher=fetcher,
            install_subdir="lib/nodejs",
            stable_name="node",
            binaries=NODE_BINARIES,
            rc_lines=node_rc_lines(config.prefix),
            allow_version_fallback=allow_fallback,
            machine=self.machine,
            kernel=self.kernel,
        )

    def install(self, config: Config) -> InstallResult:
        result = self.pipeline(config).run()
        if result.dry_run:
            return result

        corepack = os.path.join(config.bin_dir, "corepack")
        if "corepack" in result.linked_binaries:
            self.execute_step(config, InstallStep(
                "Enable corepack",
                (corepack, "enable"),
                requires_sudo=needs_sudo(result.install_dir),
                on_failure="ignore",
            ))

        node_version = probe_version(os.path.join(config.bin_dir, "node"), ("-v",))
        npm_version = probe_version(os.path.join(config.bin_dir, "npm"), ("-v",))
        result = replace(
            result,
            summary_rows=(
                ("Node", f"v{node_version}" if node_version else f"v{result.installed_version}"),
                ("npm", npm_version or "unknown"),
                ("Location", result.install_dir),
                ("Binaries", ", ".join(result.linked_binaries)),
            ),
        )
        success(f"Node.js {result.installed_version} installed successfully!")
        return self.with_activation_hint(result, config)
