"""
Integration tests for the read side of the API: health, doctor discovery
paging and the consultation list/detail views an administrator sees.

To run the tests:

```
pytest -q clinic/tests
```
"""
from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Consultation, DoctorProfile, Message, Payment, Role, User


class ReadApiTests(APITestCase):
    def setUp(self) -> None:
        """Three doctors, one patient with two consultations, one admin."""
        self.doctors = []
        for i, spec in enumerate(['Pediatrics', 'Cardiology', 'Pediatric Surgery']):
            doc = User.objects.create_user(f'doc{i}@example.com', 'P@ssw0rd1', full_name=f'Dokter {chr(65 + i)}',
                                           role=Role.DOCTOR)
            DoctorProfile.objects.create(user=doc, specialization=spec, license_number=f'LIC-{i}',
                                         consultation_fee=Decimal('50000'))
            self.doctors.append(doc)
        self.patient = User.objects.create_user('p@example.com', 'P@ssw0rd1', full_name='Pasien', role=Role.PATIENT)
        self.admin = User.objects.create_user('a@example.com', 'P@ssw0rd1', full_name='Admin', role=Role.ADMIN)

        self.first = Consultation.objects.create(patient=self.patient, doctor=self.doctors[0], title='Anak demam',
                                                 description='Anak demam sejak dua hari')
        self.second = Consultation.objects.create(patient=self.patient, doctor=self.doctors[1], title='Nyeri dada',
                                                  description='Nyeri dada saat naik tangga')
        Consultation.objects.filter(pk=self.first.pk).update(status=Consultation.Status.ACTIVE)
        Payment.objects.create(consultation=self.first, payer=self.patient, amount=Decimal('50000'),
                               status=Payment.Status.PAID, gateway_order_id='ORDER-9-READAPI01')
        for text in ('halo', 'halo juga', 'sudah minum obat?'):
            Message.objects.create(consultation=self.first, sender=self.patient, content=text)

        self.client = APIClient()

    def test_health_is_public(self):
        r = self.client.get(reverse('health'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.data['success'])
        self.assertEqual(r.data['data']['status'], 'OK')

    def test_available_doctors_pages_by_name(self):
        self.client.force_authenticate(user=self.patient)
        r = self.client.get(reverse('doctors-available'), {'limit': 2})
        names = [d['fullName'] for d in r.data['data']['doctors']]
        self.assertEqual(names, ['Dokter A', 'Dokter B'])
        self.assertEqual(r.data['data']['pagination'], {'currentPage': 1, 'totalPages': 2, 'totalCount': 3,
                                                        'limit': 2})

        r = self.client.get(reverse('doctors-available'), {'specialization': 'pediatric'})
        self.assertEqual([d['id'] for d in r.data['data']['doctors']], [self.doctors[0].id, self.doctors[2].id])

    def test_oversized_limit_is_rejected(self):
        self.client.force_authenticate(user=self.patient)
        r = self.client.get(reverse('doctors-available'), {'limit': 1000})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['code'], 'validation_failed')

    def test_admin_sees_every_consultation_with_counts(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get(reverse('consultations'))
        rows = {c['id']: c for c in r.data['data']['consultations']}
        self.assertEqual(set(rows), {self.first.id, self.second.id})
        self.assertEqual(rows[self.first.id]['messageCount'], 3)
        self.assertEqual(rows[self.second.id]['messageCount'], 0)

    def test_admin_detail_includes_messages_and_payment(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get(reverse('consultation-detail', args=[self.first.id]))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        data = r.data['data']
        self.assertEqual([m['content'] for m in data['messages']], ['halo', 'halo juga', 'sudah minum obat?'])
        self.assertEqual(data['payment']['status'], 'PAID')
        self.assertEqual(data['status'], 'ACTIVE')

        r = self.client.get(reverse('consultation-detail', args=[self.second.id]))
        self.assertIsNone(r.data['data']['payment'])
