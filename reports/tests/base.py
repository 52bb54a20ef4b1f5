from datetime import date, datetime
from decimal import Decimal
from itertools import count

from django.contrib.auth import get_user_model
from django.utils import timezone

from accounts.models import Business, BusinessMembership
from finance.models import InterBranchInvoice, LedgerTransaction
from inventory.models import Branch, BranchStock, Category, Product
from sales.models import Customer, Sale, SaleItem


User = get_user_model()

_receipts = count(1)


def at(year, month, day, hour=12, minute=0):
    """Aware datetime in the current time zone."""
    return timezone.make_aware(datetime(year, month, day, hour, minute))


class ConsolidatedReportFixtureMixin:
    """
    Two tenants. The main tenant has three branches and a March 2024 book:

    - Jakarta: 2 completed sales (111.00 cash, 49.95 card), Rent 50 expense,
      Sales 300 income, coffee stock 10
    - Bandung: 1 completed sale (222.00 cash), 1 void sale, Utilities 20 and
      Supplier 40 expenses, chips stock 20
    - Surabaya: no activity
    - Invoices: Jakarta -> Bandung 30 paid, Bandung -> Jakarta 25 sent
    """

    PERIOD = {'startDate': '2024-03-01', 'endDate': '2024-03-31'}

    def create_fixture(self):
        self.owner = User.objects.create_user(
            email="owner@nusantara.example.com",
            password="strongpass123",
            name="Nusantara Owner",
        )
        self.business = Business.objects.create(
            owner=self.owner,
            name="Nusantara Retail",
            tin="TIN-123456",
            email="finance@nusantara.example.com",
            address="Jl. Sudirman 1",
            currency="IDR",
        )
        self.owner_membership = BusinessMembership.objects.get(business=self.business, user=self.owner)

        self.jakarta = Branch.objects.create(
            business=self.business, name="Jakarta Central", code="JKT-01", region="West", city="Jakarta",
        )
        self.bandung = Branch.objects.create(
            business=self.business, name="Bandung Dago", code="BDG-01", region="West", city="Bandung",
        )
        self.surabaya = Branch.objects.create(
            business=self.business, name="Surabaya Tunjungan", code="SBY-01", region="East", city="Surabaya",
        )

        beverages = Category.objects.create(business=self.business, name="Beverages")
        snacks = Category.objects.create(business=self.business, name="Snacks")
        self.coffee = Product.objects.create(
            business=self.business, category=beverages, name="Iced Coffee", sku="BEV-001",
            cost=Decimal('10.00'), price=Decimal('25.00'),
        )
        self.chips = Product.objects.create(
            business=self.business, category=snacks, name="Cassava Chips", sku="SNK-001",
            cost=Decimal('4.00'), price=Decimal('10.00'),
        )
        self.customer = Customer.objects.create(business=self.business, name="Budi Santoso")

        self.create_sale(
            self.jakarta, at(2024, 3, 10, 10), Sale.PAYMENT_TYPE_CASH,
            subtotal='100.00', tax='11.00', total='111.00', paid='120.00', change='9.00',
            items=[(self.coffee, '4', '25.00')], customer=self.customer,
        )
        self.create_sale(
            self.jakarta, at(2024, 3, 11, 14), Sale.PAYMENT_TYPE_CARD,
            subtotal='45.00', discount='5.00', tax='4.95', total='49.95', paid='49.95',
            items=[(self.chips, '5', '10.00')],
        )
        self.create_sale(
            self.bandung, at(2024, 3, 12, 9, 30), Sale.PAYMENT_TYPE_CASH,
            subtotal='200.00', tax='22.00', total='222.00', paid='222.00',
            items=[(self.coffee, '8', '25.00')], customer=self.customer,
        )
        # Excluded: void, outside the window
        self.create_sale(
            self.bandung, at(2024, 3, 12, 11), Sale.PAYMENT_TYPE_CASH,
            subtotal='999.00', total='999.00', paid='999.00', status=Sale.STATUS_VOID,
            items=[(self.coffee, '40', '25.00')],
        )
        self.create_sale(
            self.jakarta, at(2024, 2, 28, 16), Sale.PAYMENT_TYPE_CASH,
            subtotal='500.00', total='500.00', paid='500.00',
            items=[(self.coffee, '20', '25.00')],
        )

        self.create_ledger(self.jakarta, LedgerTransaction.TYPE_EXPENSE, 'Rent', '50.00', at(2024, 3, 2))
        self.create_ledger(self.bandung, LedgerTransaction.TYPE_EXPENSE, 'Utilities', '20.00', at(2024, 3, 3))
        self.create_ledger(self.bandung, LedgerTransaction.TYPE_EXPENSE, 'Supplier', '40.00', at(2024, 3, 6))
        self.create_ledger(self.jakarta, LedgerTransaction.TYPE_INCOME, 'Sales', '300.00', at(2024, 3, 5))
        self.create_ledger(
            self.jakarta, LedgerTransaction.TYPE_EXPENSE, 'Rent', '1000.00', at(2024, 3, 4),
            status=LedgerTransaction.STATUS_CANCELLED,
        )

        BranchStock.objects.create(branch=self.jakarta, product=self.coffee, quantity=Decimal('10'))
        BranchStock.objects.create(branch=self.bandung, product=self.chips, quantity=Decimal('20'))

        InterBranchInvoice.objects.create(
            business=self.business, invoice_number="IBI-0001",
            from_branch=self.jakarta, to_branch=self.bandung, total_amount=Decimal('30.00'),
            status=InterBranchInvoice.STATUS_PAID, invoice_date=at(2024, 3, 15), paid_date=at(2024, 3, 20),
        )
        InterBranchInvoice.objects.create(
            business=self.business, invoice_number="IBI-0002",
            from_branch=self.bandung, to_branch=self.jakarta, total_amount=Decimal('25.00'),
            status=InterBranchInvoice.STATUS_SENT, invoice_date=at(2024, 3, 18), due_date=date(2024, 4, 18),
        )

        # Another tenant that must never leak into the main tenant's reports
        self.other_owner = User.objects.create_user(
            email="owner@other.example.com", password="strongpass123", name="Other Owner",
        )
        self.other_business = Business.objects.create(owner=self.other_owner, name="Other Retail")
        self.other_branch = Branch.objects.create(business=self.other_business, name="Other Branch", code="OTH-01")
        other_product = Product.objects.create(
            business=self.other_business, name="Tea", sku="TEA-001", cost=Decimal('1.00'), price=Decimal('7.77'),
        )
        self.create_sale(
            self.other_branch, at(2024, 3, 10, 10), Sale.PAYMENT_TYPE_MOBILE,
            subtotal='777.00', total='777.00', paid='777.00',
            items=[(other_product, '100', '7.77')],
        )

    def create_sale(self, branch, when, payment_method, subtotal, total, paid, tax='0.00', discount='0.00',
                    change='0.00', items=(), customer=None, status=Sale.STATUS_COMPLETED, shift=None):
        sale = Sale.objects.create(
            business=branch.business,
            branch=branch,
            shift=shift,
            customer=customer,
            receipt_number=f"RCP-{next(_receipts):06d}",
            status=status,
            payment_method=payment_method,
            subtotal=Decimal(subtotal),
            discount_amount=Decimal(discount),
            tax_amount=Decimal(tax),
            total_amount=Decimal(total),
            amount_paid=Decimal(paid),
            change_amount=Decimal(change),
            transaction_date=when,
        )
        for product, quantity, unit_price in items:
            SaleItem.objects.create(
                sale=sale, product=product, quantity=Decimal(quantity), unit_price=Decimal(unit_price),
            )
        return sale

    def create_ledger(self, branch, transaction_type, category, amount, when,
                      status=LedgerTransaction.STATUS_COMPLETED):
        return LedgerTransaction.objects.create(
            business=branch.business,
            branch=branch,
            transaction_type=transaction_type,
            category=category,
            amount=Decimal(amount),
            transaction_date=when,
            status=status,
        )

    def create_member(self, email, role, business=None, default_branch=None):
        user = User.objects.create_user(email=email, password="strongpass123", name=email.split('@')[0].title())
        BusinessMembership.objects.create(
            business=business or self.business,
            user=user,
            role=role,
            default_branch=default_branch,
            is_active=True,
        )
        return user

    def create_super_admin(self, email="root@platform.example.com"):
        return User.objects.create_user(
            email=email, password="strongpass123", name="Platform Root",
            platform_role=User.PLATFORM_SUPER_ADMIN,
        )
