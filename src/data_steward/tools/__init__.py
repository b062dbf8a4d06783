from data_steward.tools.base import ToolDefinition, text_result
from data_steward.tools.table_ddl import TableDDLTool

__all__ = ["TableDDLTool", "ToolDefinition", "text_result"]
