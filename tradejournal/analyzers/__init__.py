from .trading_stats import TradingStats, calculate_stats, filter_by_symbol, unique_symbols
from .trader_score import TraderScore, score_trader
from .breakdowns import daily_summary, equity_curve, hourly_heatmap, symbol_performance, volume_scatter
