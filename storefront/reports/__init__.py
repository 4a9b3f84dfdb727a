"""
Reports — sales report and dashboard figures for admins.
"""

from storefront.reports._service import (
    DailySales,
    SalesReport,
    DashboardStats,
    sales_report,
    dashboard_stats,
)

__all__ = ("DailySales", "SalesReport", "DashboardStats", "sales_report", "dashboard_stats")
