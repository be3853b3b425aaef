"""
Output Format Modules
Support for exporting findings and fix plans: JSON, SARIF
"""

from iamwarden.output_formats.base_exporter import BaseExporter
from iamwarden.output_formats.json_exporter import JSONExporter
from iamwarden.output_formats.sarif_exporter import SARIFExporter

EXPORTERS = {
    'json': JSONExporter,
    'sarif': SARIFExporter,
}


def get_exporter(format_name: str, output_dir: str = './cache') -> BaseExporter:
    """
    Return an exporter instance for a format name.

    Raises:
        ValueError: If the format is not supported
    """
    try:
        exporter_class = EXPORTERS[format_name.lower()]
    except KeyError:
        raise ValueError(f'Unsupported output format: {format_name}') from None
    return exporter_class(output_dir)


__all__ = [
    'BaseExporter',
    'EXPORTERS',
    'JSONExporter',
    'SARIFExporter',
    'get_exporter',
]
