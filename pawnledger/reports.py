"""Payment statement export for PawnLedger."""
import os
import pandas as pd

from pawnledger.logging_setup import get_logger

log = get_logger(__name__)

STATEMENT_COLUMNS = ["Payment ID", "Paid At", "Amount Paid", "Interest Paid", "Principal Paid"]


class StatementExporter:
    """Writes an item's payment history to CSV or Excel."""

    def __init__(self, payment_ledger, db_manager):
        self.ledger = payment_ledger
        self.db = db_manager

    def build_statement_df(self, item_id):
        """Payment history as a DataFrame with a trailing totals row."""
        history = self.ledger.get_payment_history(item_id)
        rows = [
            [p.id, p.paid_at.strftime("%Y-%m-%d"), p.amount_paid, p.interest_paid, p.principal_paid]
            for p in history.history
        ]
        df = pd.DataFrame(rows, columns=STATEMENT_COLUMNS)
        totals = pd.DataFrame([[
            "TOTAL", "",
            history.totals.total_amount_paid,
            history.totals.total_interest_paid,
            history.totals.total_principal_paid,
        ]], columns=STATEMENT_COLUMNS)
        return pd.concat([df, totals], ignore_index=True)

    def export_payment_history(self, item_id, output_path):
        """Export the statement; the format follows the file extension.

        Returns:
            tuple: (bool, str) - (Success status, Result message or Error details).
        """
        df = self.build_statement_df(item_id)
        ext = os.path.splitext(output_path)[1].lower()
        if ext == ".xlsx":
            return self._export_to_excel(df, output_path)
        if ext == ".csv":
            return self._export_to_csv(df, output_path)
        return False, f"Unsupported export format: {ext or output_path}"

    def _export_to_excel(self, df, output_path):
        """Export DataFrame to Excel with formatting."""
        try:
            header_bg = self.db.get_setting("excel_header_bg", "#D7E4BC")
            total_bg = self.db.get_setting("excel_total_bg", "#F0F0F0")

            with pd.ExcelWriter(output_path, engine='xlsxwriter') as writer:
                df.to_excel(writer, index=False, sheet_name='Payments')
                workbook = writer.book
                worksheet = writer.sheets['Payments']

                header_fmt = workbook.add_format({'bold': True, 'border': 1, 'bg_color': header_bg})
                num_fmt = workbook.add_format({'num_format': '#,##0.00'})
                total_fmt = workbook.add_format({'bold': True, 'border': 1, 'num_format': '#,##0.00', 'bg_color': total_bg})

                for col_num, value in enumerate(df.columns.values):
                    worksheet.write(0, col_num, value, header_fmt)

                worksheet.set_column('A:B', 14)
                worksheet.set_column('C:E', 16, num_fmt)

                # Totals row sits last; +1 for the header row
                total_row_idx = len(df)
                for col_num, col_name in enumerate(df.columns):
                    worksheet.write(total_row_idx, col_num, df.iloc[-1][col_name], total_fmt)

            log.info("Statement written to %s", output_path)
            return True, "Statement generated successfully."
        except (OSError, ValueError) as e:
            log.error("Excel export failed: %s", e)
            return False, f"Excel Export Failed: {e}"

    def _export_to_csv(self, df, output_path):
        """Export DataFrame to CSV."""
        try:
            df.to_csv(output_path, index=False)
            log.info("Statement written to %s", output_path)
            return True, "Statement generated successfully (CSV)."
        except OSError as e:
            log.error("CSV export failed: %s", e)
            return False, f"CSV Export Failed: {e}"
