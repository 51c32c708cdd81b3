from django.contrib.auth import get_user_model
from django.test import TestCase

from .models import Payment
from .services import payments_for, record_payment, record_refund


class PaymentLedgerTests(TestCase):

	def setUp(self) -> None:
		User = get_user_model()
		self.cashier = User.objects.create_user(email='agent@example.com', password='password123', member_type='AGENT')
		self.target = User.objects.create_user(email='guest@example.com', password='password123')

	def test_record_payment_generates_reference(self) -> None:
		payment = record_payment(
			content_object=self.target,
			amount=120000,
			status=Payment.Status.SUCCEEDED,
			method='CREDIT_CARD',
			recorded_by=self.cashier,
		)
		self.assertEqual(payment.kind, Payment.Kind.CHARGE)
		self.assertTrue(payment.reference.startswith('charge_'))
		self.assertEqual(payment.content_object, self.target)
		self.assertEqual(payment.metadata, {})

	def test_explicit_reference_is_kept(self) -> None:
		payment = record_payment(
			content_object=self.target,
			amount=5000,
			status=Payment.Status.PENDING,
			reference='manual-42',
		)
		self.assertEqual(payment.reference, 'manual-42')

	def test_record_refund_stores_reason(self) -> None:
		refund = record_refund(content_object=self.target, amount=50000, reason='Guest cancelled')
		self.assertEqual(refund.kind, Payment.Kind.REFUND)
		self.assertEqual(refund.status, Payment.Status.REFUNDED)
		self.assertEqual(refund.metadata, {'reason': 'Guest cancelled'})

	def test_payments_for_filters_by_target(self) -> None:
		record_payment(content_object=self.target, amount=1000, status=Payment.Status.SUCCEEDED)
		record_payment(content_object=self.cashier, amount=2000, status=Payment.Status.SUCCEEDED)
		self.assertEqual([payment.amount for payment in payments_for(self.target)], [1000])
