import json

import click
from flask.cli import AppGroup

from app.jobs import crm_document_alerts, daily_reminders, eld_fault_analysis, hos_exception_alerts
from app.utils.helpers import to_uuid

jobs_cli = AppGroup('jobs', help='Scheduled background jobs.')

def _echo(summary):
    click.echo(json.dumps(summary, default=str))

@jobs_cli.command('crm-document-alerts')
def crm_document_alerts_command():
    """Alert on CRM documents expiring within 30 days."""
    _echo(crm_document_alerts.run())

@jobs_cli.command('analyze-eld-faults')
@click.option('--company-id', default=None, help='Only analyze this company\'s events.')
@click.option('--limit', default=100, show_default=True, type=int)
def analyze_eld_faults_command(company_id, limit):
    """Create maintenance records from ELD fault codes."""
    _echo(eld_fault_analysis.run(company_id=to_uuid(company_id, 'company_id'), limit=limit))

@jobs_cli.command('hos-exception-alerts')
def hos_exception_alerts_command():
    """Warn drivers and managers about hours-of-service limits."""
    _echo(hos_exception_alerts.run())

@jobs_cli.command('daily-reminders')
def daily_reminders_command():
    """Create scheduled maintenance reminders."""
    _echo(daily_reminders.run())
