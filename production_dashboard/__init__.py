"""
Production Dashboard: manufacturing reporting backend.

Analytics backend for turning monthly MES / spreadsheet exports (production,
availability, cycle time, defects, price list) into dashboard-ready pivots,
OEE figures and key-issue lists.

To feed data from a database instead of uploads:
    Implement get_all / replace_all / merge_months over the database and
    pass its records to the functions in production_dashboard.dashboard.
    Records stay plain dicts; nothing downstream depends on the source.

To connect to Streamlit/Dash:
    Call dashboard.get_oee_summary(...), dashboard.get_pivot(...) or
    dashboard.get_key_issues(...) and render the returned dicts and frames.

To support a renamed export column:
    Add the new header to the field's tuple in config.FIELD_CANDIDATES.
    Position in the tuple is priority.
"""
