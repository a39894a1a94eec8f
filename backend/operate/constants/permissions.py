"""Permission catalog: every assignable capability, grouped for the admin matrix.

Entries are (permission, resource) pairs; the pair must be unique across the whole matrix.
Extend cautiously; never rename a permission silently, the store holds grants by name.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

KEY_SEPARATOR = '::'
NULL_RESOURCE = 'null'


class DuplicatePermissionError(ValueError):
    pass


@dataclass(frozen=True)
class CatalogEntry:
    permission: str
    resource: Optional[str]
    label: str
    description: str
    include_in_full: bool = True

    @property
    def key(self) -> str:
        return make_permission_key(self.permission, self.resource)


def make_entry(permission: str, resource: Optional[str], label: str, description: str, include_in_full: bool = True) -> CatalogEntry:
    return CatalogEntry(permission, resource, label, description, include_in_full)


def make_permission_key(permission: str, resource: Optional[str]) -> str:
    """Canonical composite key: ``<permission>::<resource or 'null'>``.

    The store spells a global grant as ``''``; it keys the same as ``None``.
    """
    if not permission or KEY_SEPARATOR in permission:
        raise ValueError(f"invalid permission name: {permission!r}")
    if resource == '':
        resource = None
    if resource is not None and (resource == NULL_RESOURCE or KEY_SEPARATOR in resource):
        raise ValueError(f"invalid resource tag: {resource!r}")
    return f"{permission}{KEY_SEPARATOR}{resource if resource is not None else NULL_RESOURCE}"


def parse_permission_key(key: str) -> Tuple[str, Optional[str]]:
    permission, sep, resource = key.partition(KEY_SEPARATOR)
    if not sep or not permission or not resource:
        raise ValueError(f"malformed permission key: {key!r}")
    return permission, (None if resource == NULL_RESOURCE else resource)


PERMISSION_COLUMNS = [
    {'key': 'full', 'label': 'Full'},
    {'key': 'view', 'label': 'View'},
    {'key': 'create', 'label': 'Create'},
    {'key': 'edit', 'label': 'Edit'},
    {'key': 'delete', 'label': 'Delete'},
    {'key': 'approve', 'label': 'Approve'},
    {'key': 'others', 'label': 'Others'},
]
COLUMN_KEYS = [c['key'] for c in PERMISSION_COLUMNS]

PERMISSION_MATRIX: List[Dict] = [
    {
        'module': 'Administration',
        'description': 'System-level capabilities and governance controls.',
        'rows': [
            {
                'key': 'admin_management',
                'label': 'User & Role Management',
                'actions': {
                    'view': [make_entry('view_analytics', 'analytics', 'View system analytics', 'Allows viewing platform overview analytics and dashboards.')],
                    'others': [
                        make_entry('manage_users', 'users', 'Manage users', 'Create, update, or deactivate user accounts.'),
                        make_entry('manage_roles', 'roles', 'Manage roles', 'Assign and configure application roles and permissions.'),
                    ],
                },
            },
        ],
    },
    {
        'module': 'Optimization Jobs',
        'description': 'Authoring, reviewing, and governing AH balancer job cards.',
        'rows': [
            {
                'key': 'jobs_all',
                'label': 'Jobs (All Records)',
                'actions': {
                    'view': [make_entry('view_all_jobs', 'jobs', 'View all jobs', 'Provides visibility into every job regardless of owner.')],
                    'edit': [make_entry('edit_all_jobs', 'jobs', 'Edit all jobs', 'Allows editing any job record in the system.')],
                    'delete': [make_entry('delete_all_jobs', 'jobs', 'Delete all jobs', 'Allows deleting any job from the system.')],
                    'approve': [
                        make_entry('verify_jobs', 'jobs', 'Verify jobs', 'Approve or reject job calculations.'),
                        make_entry('request_modification', 'jobs', 'Request modifications', 'Send jobs back to creators with revision notes.'),
                    ],
                    'others': [make_entry('bypass_workflow', 'jobs', 'Bypass workflow', 'Override workflow restrictions for urgent corrections.')],
                },
            },
            {
                'key': 'jobs_own',
                'label': 'Jobs (Own Records)',
                'actions': {
                    'view': [make_entry('view_own_jobs', 'jobs', 'View own jobs', 'View jobs created by the current user.')],
                    'create': [make_entry('create_jobs', 'jobs', 'Create jobs', 'Create new job calculations.')],
                    'edit': [make_entry('edit_own_jobs', 'jobs', 'Edit own jobs', 'Edit drafts or jobs requiring modification that were created by the user.')],
                    'delete': [
                        make_entry('delete_own_jobs', 'jobs', 'Delete own jobs', 'Delete own job records.'),
                        make_entry('delete_own_draft_jobs', 'jobs', 'Delete drafts', 'Delete draft jobs prior to submission.'),
                    ],
                    'approve': [make_entry('submit_for_review', 'jobs', 'Submit for review', 'Submit completed jobs for verifier review.')],
                    'others': [make_entry('view_verification_history', 'jobs', 'View verification history', 'Access verification logs and reviewer comments.')],
                },
            },
            {
                'key': 'jobs_data',
                'label': 'Data Export & Analytics',
                'actions': {
                    # job-scoped analytics; the platform-wide grant lives under Administration
                    'view': [make_entry('view_analytics', 'jobs', 'View analytics', 'Review analytics specific to job performance.')],
                    'others': [
                        make_entry('export_all_data', 'data', 'Export all data', 'Export system-wide datasets for analysis.'),
                        make_entry('export_own_data', 'data', 'Export own data', 'Export data authored by the current user.'),
                    ],
                },
            },
        ],
    },
    {
        'module': 'Inventory',
        'description': 'Stock, transactions, and traceability controls.',
        'rows': [
            {
                'key': 'inventory_items',
                'label': 'Inventory Items',
                'actions': {
                    'view': [make_entry('view_inventory', 'inventory', 'View inventory', 'Browse catalogue items and quantities.')],
                    'create': [make_entry('add_inventory_items', 'inventory', 'Add inventory items', 'Add new tracked inventory items.')],
                    'edit': [make_entry('edit_inventory_items', 'inventory', 'Edit inventory items', 'Update item attributes, cost, or metadata.')],
                    'delete': [make_entry('delete_inventory_items', 'inventory', 'Delete inventory items', 'Remove inventory records that are obsolete or duplicated.')],
                },
            },
            {
                'key': 'inventory_transactions',
                'label': 'Inventory Transactions',
                'actions': {
                    'create': [make_entry('manage_inventory_transactions', 'inventory', 'Record inventory transactions', 'Create stock movements such as receipts, issues, or adjustments.')],
                },
            },
            {
                'key': 'inventory_reports',
                'label': 'Inventory Reports',
                'actions': {
                    'view': [make_entry('view_inventory_reports', 'inventory', 'View inventory reports', 'Access valuation, COGS, and trend reports.')],
                },
            },
        ],
    },
    {
        'module': 'Contacts',
        'description': 'Centralised customer and vendor master data with ownership tracking.',
        'rows': [
            {
                'key': 'contacts_customers',
                'label': 'Customers',
                'actions': {
                    'view': [make_entry('view_customers', 'contacts', 'View customers', 'Browse customer directory and account summary overview.')],
                    'create': [make_entry('create_customers', 'contacts', 'Create customers', 'Add new customer organisations or individuals.')],
                    'edit': [make_entry('edit_customers', 'contacts', 'Edit customers', 'Modify customer profile, billing, and payment settings.')],
                    'delete': [make_entry('delete_customers', 'contacts', 'Delete customers', 'Archive or remove customer records when permitted.')],
                    'others': [
                        make_entry('assign_customer_owner', 'contacts', 'Assign owner', 'Assign responsibility or territory ownership for a customer.'),
                        make_entry('manage_customer_transactions', 'contacts', 'Handle customer transactions', 'Allow applying credits, notes, or statement updates for assigned customers.'),
                    ],
                },
            },
            {
                'key': 'contacts_vendors',
                'label': 'Vendors',
                'actions': {
                    'view': [make_entry('view_vendors', 'contacts', 'View vendors', 'Browse vendor master data.')],
                    'create': [make_entry('create_vendors', 'contacts', 'Create vendors', 'Register new vendors and supplier partners.')],
                    'edit': [make_entry('edit_vendors', 'contacts', 'Edit vendors', 'Update vendor contact, compliance, or payment instructions.')],
                    'delete': [make_entry('delete_vendors', 'contacts', 'Delete vendors', 'Deactivate or remove vendor records.')],
                    'others': [make_entry('manage_vendor_bank_details', 'contacts', 'Manage bank details', 'Maintain vendor bank accounts for payouts and refunds.')],
                },
            },
        ],
    },
    {
        'module': 'Sales & Estimates',
        'description': 'Quote-to-cash processes including estimates, invoices, and revenue tracking.',
        'rows': [
            {
                'key': 'sales_estimates',
                'label': 'Estimates',
                'actions': {
                    'view': [make_entry('view_estimates', 'estimates', 'View estimates', 'Access customer estimates and proposal status.')],
                    'create': [make_entry('create_estimates', 'estimates', 'Create estimates', 'Draft new estimates for customers or prospects.')],
                    'edit': [make_entry('edit_estimates', 'estimates', 'Edit estimates', 'Update line items, taxes, or validity on estimates.')],
                    'delete': [make_entry('delete_estimates', 'estimates', 'Delete estimates', 'Remove estimates no longer required.')],
                    'approve': [make_entry('approve_estimates', 'estimates', 'Approve estimates', 'Approve or sign off estimates prior to sharing.')],
                    'others': [
                        make_entry('send_estimates', 'estimates', 'Send estimates', 'Email or share estimates with customers directly.'),
                        make_entry('convert_estimates', 'estimates', 'Convert to invoice', 'Convert winning estimates into invoices automatically.'),
                    ],
                },
            },
            {
                'key': 'sales_invoices',
                'label': 'Invoices',
                'actions': {
                    'view': [make_entry('view_invoices', 'invoices', 'View invoices', 'View invoices, balances, and payment history.')],
                    'create': [make_entry('create_invoices', 'invoices', 'Create invoices', 'Generate invoices for goods or services rendered.')],
                    'edit': [make_entry('edit_invoices', 'invoices', 'Edit invoices', 'Update invoice details before or after issuance.')],
                    'delete': [make_entry('delete_invoices', 'invoices', 'Delete invoices', 'Void or delete invoices when necessary.')],
                    'approve': [make_entry('approve_invoices', 'invoices', 'Approve invoices', 'Authorise invoices for release to customers.')],
                    'others': [
                        make_entry('send_invoices', 'invoices', 'Send invoices', 'Distribute invoices via email or sharing links.'),
                        make_entry('record_invoice_payments', 'invoices', 'Record payments', 'Capture customer payments and allocate against invoices.'),
                        make_entry('write_off_invoices', 'invoices', 'Write-off invoices', 'Write off irrecoverable balances or bad debt.'),
                    ],
                },
            },
            {
                'key': 'sales_transactions',
                'label': 'Sales Transactions',
                'actions': {
                    'view': [make_entry('view_sales_transactions', 'sales_transactions', 'View sales transactions', 'Review recorded sales and COGS impact.')],
                    'create': [make_entry('create_sales_transactions', 'sales_transactions', 'Record sales transactions', 'Record ad-hoc sales or point-of-sale entries.')],
                    'edit': [make_entry('edit_sales_transactions', 'sales_transactions', 'Edit sales transactions', 'Amend sales transaction details for accuracy.')],
                    'delete': [make_entry('delete_sales_transactions', 'sales_transactions', 'Delete sales transactions', 'Reverse or remove sales entries when required.')],
                },
            },
        ],
    },
    {
        'module': 'Purchases & Bills',
        'description': 'Procure-to-pay controls for purchase orders, bills, and vendor credits.',
        'rows': [
            {
                'key': 'purchases_po',
                'label': 'Purchase Orders',
                'actions': {
                    'view': [make_entry('view_purchase_orders', 'purchase_orders', 'View purchase orders', 'Access purchase orders and approval status.')],
                    'create': [make_entry('create_purchase_orders', 'purchase_orders', 'Create purchase orders', 'Raise purchase orders for vendor procurement.')],
                    'edit': [make_entry('edit_purchase_orders', 'purchase_orders', 'Edit purchase orders', 'Modify quantities, pricing, or delivery schedules.')],
                    'delete': [make_entry('delete_purchase_orders', 'purchase_orders', 'Delete purchase orders', 'Cancel or delete unnecessary purchase orders.')],
                    'approve': [make_entry('approve_purchase_orders', 'purchase_orders', 'Approve purchase orders', 'Authorise purchase orders for release to vendors.')],
                    'others': [make_entry('convert_purchase_orders', 'purchase_orders', 'Convert to bills', 'Convert fulfilled purchase orders into bills.')],
                },
            },
            {
                'key': 'purchases_bills',
                'label': 'Bills & Vendor Invoices',
                'actions': {
                    'view': [make_entry('view_bills', 'bills', 'View bills', 'Review vendor bills, due dates, and payment status.')],
                    'create': [make_entry('create_bills', 'bills', 'Create bills', 'Capture vendor invoices or expenses.')],
                    'edit': [make_entry('edit_bills', 'bills', 'Edit bills', 'Update bill line items, taxes, or allocations.')],
                    'delete': [make_entry('delete_bills', 'bills', 'Delete bills', 'Void or delete vendor bills when needed.')],
                    'approve': [make_entry('approve_bills', 'bills', 'Approve bills', 'Authorise bills for payment processing.')],
                    'others': [
                        make_entry('record_bill_payments', 'bills', 'Record bill payments', 'Capture vendor payments, advances, or settlements.'),
                        make_entry('apply_bill_credits', 'bills', 'Apply credits', 'Apply debit/credit notes against outstanding bills.'),
                    ],
                },
            },
        ],
    },
    {
        'module': 'Accounts & Payments',
        'description': 'Receivables and payables management, reconciliation, and adjustments.',
        'rows': [
            {
                'key': 'accounts_receivable',
                'label': 'Accounts Receivable',
                'actions': {
                    'view': [make_entry('view_accounts_receivable', 'accounts', 'View receivables', 'View outstanding customer balances and ageing.')],
                    'others': [
                        make_entry('record_customer_payments', 'accounts', 'Record customer payments', 'Log customer receipts, including partial and advance payments.'),
                        make_entry('manage_credit_notes', 'accounts', 'Manage credit notes', 'Issue and apply customer credit notes to balances.'),
                    ],
                },
            },
            {
                'key': 'accounts_payable',
                'label': 'Accounts Payable',
                'actions': {
                    'view': [make_entry('view_accounts_payable', 'accounts', 'View payables', 'Monitor outstanding vendor balances and due dates.')],
                    'others': [
                        make_entry('record_vendor_payments', 'accounts', 'Record vendor payments', 'Record vendor payments, part-payments, and retainers.'),
                        make_entry('manage_debit_notes', 'accounts', 'Manage debit notes', 'Create and apply vendor debit notes against bills.'),
                    ],
                },
            },
        ],
    },
    {
        'module': 'Banking',
        'description': 'Bank account administration, reconciliations, and statement imports.',
        'rows': [
            {
                'key': 'banking_accounts',
                'label': 'Bank Accounts',
                'actions': {
                    'view': [make_entry('view_bank_accounts', 'banking', 'View bank accounts', 'Access bank account ledger balances and meta data.')],
                    'create': [make_entry('create_bank_accounts', 'banking', 'Create bank accounts', 'Add new bank accounts or cash books.')],
                    'edit': [make_entry('edit_bank_accounts', 'banking', 'Edit bank accounts', 'Update account details, default status, or sync settings.')],
                    'delete': [make_entry('delete_bank_accounts', 'banking', 'Delete bank accounts', 'Close or archive unused bank accounts.')],
                    'others': [make_entry('reconcile_bank_accounts', 'banking', 'Reconcile accounts', 'Perform bank reconciliations and lock reconciled periods.')],
                },
            },
            {
                'key': 'banking_transactions',
                'label': 'Bank Transactions',
                'actions': {
                    'view': [make_entry('view_bank_transactions', 'banking', 'View bank transactions', 'Review imported or manually recorded bank transactions.')],
                    'create': [make_entry('create_bank_transactions', 'banking', 'Create bank transactions', 'Record manual receipts, payments, and transfers.')],
                    'edit': [make_entry('edit_bank_transactions', 'banking', 'Edit bank transactions', 'Amend bank entries prior to reconciliation.')],
                    'delete': [make_entry('delete_bank_transactions', 'banking', 'Delete bank transactions', 'Remove duplicate or erroneous bank transactions.')],
                    'others': [make_entry('import_bank_transactions', 'banking', 'Import bank feeds', 'Upload or sync bank statements and feeds.')],
                },
            },
        ],
    },
    {
        'module': 'Tax & Compliance',
        'description': 'Manage statutory tax rates, categories, and filing preparation.',
        'rows': [
            {
                'key': 'tax_rates',
                'label': 'Tax Rates',
                'actions': {
                    'view': [make_entry('view_tax_rates', 'tax', 'View tax rates', 'View configured indirect tax rates and validity.')],
                    'create': [make_entry('create_tax_rates', 'tax', 'Create tax rates', 'Add new GST/VAT rates or cess components.')],
                    'edit': [make_entry('edit_tax_rates', 'tax', 'Edit tax rates', 'Modify rate slabs and associated accounts.')],
                    'delete': [make_entry('delete_tax_rates', 'tax', 'Delete tax rates', 'De-activate or delete obsolete tax rates.')],
                },
            },
            {
                'key': 'tax_categories',
                'label': 'Tax Categories',
                'actions': {
                    'view': [make_entry('view_tax_categories', 'tax', 'View tax categories', 'Review classification of items and services for tax.')],
                    'create': [make_entry('create_tax_categories', 'tax', 'Create tax categories', 'Define new tax categories for items or services.')],
                    'edit': [make_entry('edit_tax_categories', 'tax', 'Edit tax categories', 'Update category rules and associated rates.')],
                    'delete': [make_entry('delete_tax_categories', 'tax', 'Delete tax categories', 'Remove categories no longer in use.')],
                    'others': [make_entry('manage_tax_filings', 'tax', 'Manage tax filings', 'Prepare, export, and mark statutory filings (GST, VAT, etc.) as completed.')],
                },
            },
        ],
    },
    {
        'module': 'Financial Reports',
        'description': 'Business performance dashboards and statutory financial reporting.',
        'rows': [
            {'key': 'reports_pl', 'label': 'Profit & Loss', 'actions': {
                'view': [make_entry('view_pl_reports', 'reports', 'View P&L', 'Access profit and loss reports with drill-down detail.')]}},
            {'key': 'reports_sales', 'label': 'Sales Reports', 'actions': {
                'view': [make_entry('view_sales_reports', 'reports', 'View sales reports', 'Review sales performance, revenue trends, and margins.')]}},
            {'key': 'reports_purchases', 'label': 'Purchase Reports', 'actions': {
                'view': [make_entry('view_purchase_reports', 'reports', 'View purchase reports', 'Analyse vendor spend and procurement trends.')]}},
            {'key': 'reports_cashflow', 'label': 'Cashflow & Other', 'actions': {
                'view': [make_entry('view_cashflow_reports', 'reports', 'View cashflow reports', 'View cashflow, balance sheet, and other management reports.')]}},
        ],
    },
]


def iter_entries(matrix: List[Dict]) -> Iterator[Tuple[Dict, Dict, str, CatalogEntry]]:
    """Yield (module, row, column, entry) for every entry in declaration order."""
    for module in matrix:
        for row in module['rows']:
            for column, entries in row['actions'].items():
                for entry in entries:
                    yield module, row, column, entry


def build_permission_keys(matrix: List[Dict]) -> Set[str]:
    """Return the catalog key set; raise DuplicatePermissionError if a (permission, resource) pair repeats."""
    keys: Set[str] = set()
    for module, row, column, entry in iter_entries(matrix):
        if column not in COLUMN_KEYS:
            raise ValueError(f"unknown action column {column!r} in row {row['key']}")
        key = entry.key
        if key in keys:
            raise DuplicatePermissionError(f"duplicate permission {key} in {module['module']} / {row['key']} / {column}")
        keys.add(key)
    return keys


PERMISSION_CONFIG_KEYS = frozenset(build_permission_keys(PERMISSION_MATRIX))

ALL_ENTRIES: List[CatalogEntry] = [entry for _, _, _, entry in iter_entries(PERMISSION_MATRIX)]
