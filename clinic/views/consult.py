from rest_framework.decorators import api_view

from clinic.models import Role
from clinic.permissions import allow_roles
from clinic.responses import pagination, success_response
from clinic.serializers.consult import (AvailableDoctorsQuerySerializer, ConsultationCreateSerializer,
                                        ConsultationListQuerySerializer, ConsultationStatusSerializer,
                                        available_doctor_data, consultation_data, consultation_detail_data)
from clinic.services.consultations import (create_consultation, get_consultation_detail, list_consultations,
                                          transition_consultation)
from clinic.services.doctors import list_available_doctors


@api_view(['GET'])
@allow_roles()
def available_doctors(request):
    q = AvailableDoctorsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    items, total = list_available_doctors(specialization=(vd.get('specialization') or '').strip() or None,
                                          page=vd['page'], limit=vd['limit'])
    return success_response({
        'doctors': [available_doctor_data(u) for u in items],
        'pagination': pagination(vd['page'], vd['limit'], total),
    }, 'Available doctors retrieved successfully')


@api_view(['GET', 'POST'])
@allow_roles(POST=[Role.PATIENT])
def consultation_collection(request):
    if request.method == 'POST':
        s = ConsultationCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        c = create_consultation(request.user, **s.validated_data)
        return success_response(consultation_data(c), 'Consultation created successfully', status=201)

    q = ConsultationListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    items, total = list_consultations(request.user, status=vd.get('status'), page=vd['page'], limit=vd['limit'])
    return success_response({
        'consultations': [consultation_data(c) for c in items],
        'pagination': pagination(vd['page'], vd['limit'], total),
    }, 'Consultations retrieved successfully')


@api_view(['GET'])
@allow_roles()
def consultation_detail(request, pk: int):
    c = get_consultation_detail(request.user, pk)
    return success_response(consultation_detail_data(c), 'Consultation detail retrieved successfully')


@api_view(['PUT'])
@allow_roles(Role.DOCTOR, Role.ADMIN)
def consultation_status(request, pk: int):
    s = ConsultationStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    c = transition_consultation(request.user, pk, s.validated_data['status'])
    return success_response(consultation_data(c), 'Consultation status updated successfully')
