"""
Export output writer.

Writes the exported Markdown to disk and copies every registered
attachment next to it, so the result can be opened outside Logseq.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from .host import BaseHost
from .models import ExportResult
from .utils import safe_filename


class OutputReport(BaseModel):
    """
    Outcome of writing one export to disk.
    """

    markdown_path: Optional[str] = Field(
        None,
        description="Path of the written Markdown file, None if writing failed"
    )

    copied_assets: List[str] = Field(
        default_factory=list,
        description="Destination paths of the attachments that were copied"
    )

    failed_assets: List[str] = Field(
        default_factory=list,
        description="Titles of the attachments that could not be copied"
    )

    message: str = Field(
        "",
        description="Summary shown to the user"
    )

    severity: str = Field(
        "success",
        description="Notification severity: success, warning or error"
    )


def asset_folder_name(asset_path: str) -> str:
    """Directory name for attachments: ``../`` segments and outer slashes removed, ``assets`` if nothing is left."""
    folder = re.sub(r"^/+|/+$", "", asset_path.replace("../", ""))
    return folder or "assets"


async def write_export(result: ExportResult, host: BaseHost, output_dir: str,
                       page_name: str = "export", asset_path: str = "assets/") -> OutputReport:
    """
    Write an export to ``output_dir``.

    The Markdown goes to ``<safe page name>.md``; attachments are copied from
    their source paths into the asset folder. Failures are logged and
    reported through the host, never raised.

    Args:
        result: The export to write
        host: Host used to notify the user
        output_dir: Destination directory
        page_name: Name the Markdown file is derived from
        asset_path: Asset directory prefix used during the export

    Returns:
        OutputReport describing what was written
    """
    report = OutputReport()
    out = Path(output_dir)
    markdown_file = out / f"{safe_filename(page_name or 'export')}.md"

    try:
        out.mkdir(parents=True, exist_ok=True)
        markdown_file.write_text(result.markdown, encoding="utf-8")
        report.markdown_path = str(markdown_file)
        logging.info(f"Wrote Markdown to {markdown_file}")
    except OSError as e:
        logging.error(f"Failed to write {markdown_file}: {e}")
        report.message = f"Failed to write {markdown_file.name}"
        report.severity = "error"
        await host.show_message(report.message, report.severity)
        return report

    if result.assets:
        folder = out / asset_folder_name(asset_path)
        logging.info(f"Copying {len(result.assets)} assets into {folder}")

        for info in result.assets.values():
            target = folder / info.file_name
            try:
                folder.mkdir(parents=True, exist_ok=True)
                shutil.copy2(info.source_path, target)
                report.copied_assets.append(str(target))
                logging.debug(f"Copied asset {info.title} to {target}")
            except OSError as e:
                logging.error(f"Failed to copy asset {info.title}: {e}")
                report.failed_assets.append(info.title)

    copied, failed = len(report.copied_assets), len(report.failed_assets)
    if not result.assets:
        report.message = "Exported Markdown!"
    elif not failed:
        report.message = f"Exported Markdown with {copied} assets!"
    elif copied:
        report.message = f"Exported Markdown with {copied} assets! ({failed} failed)"
        report.severity = "warning"
    else:
        report.message = "Exported Markdown! (Failed to include assets)"
        report.severity = "warning"

    await host.show_message(report.message, report.severity)
    return report
