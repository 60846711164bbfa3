from .deals import Deal, DealAnnotation, Direction, TradingPlan, deal_id
from .deal_export import DealExportParser, SkippedRow, parse_deals
from .manual_entry import ManualEntryError, build_manual_deal
